"""The school submission intake pipeline.

``SubmissionIntake.submit`` runs one request through, in order: the rate
limit, presence and length checks, URL parsing, and then under the store lock
the duplicate check, sanitizing, the second URL check and the append.  The
first failing step raises and nothing is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from .models import SchoolSubmission
from .rate_limit import RateLimitDecision, RateLimiter
from .sanitization import clean_url, is_absolute_url, sanitize_text
from .schemas import SchoolSubmissionPayload, SubmissionResponse
from .storage import StoreBusyError, SubmissionStore

logger = logging.getLogger(__name__)

MAX_LENGTHS: Dict[str, int] = {
    "school_name": 100,
    "school_url": 200,
    "submitter_name": 50,
    "notes": 300,
}

# Field label used in the "too long" message, in checking order.
_LENGTH_LABELS: Tuple[Tuple[str, str], ...] = (
    ("school_name", "School name"),
    ("school_url", "School URL"),
    ("submitter_name", "Name"),
    ("notes", "Notes"),
)

SUCCESS_MESSAGE = (
    "Thank you! Your school has been submitted successfully. "
    "We'll review it and work to add support soon."
)
REQUIRED_MESSAGE = "School name and URL are required."
INVALID_URL_MESSAGE = "Please enter a valid URL."
DUPLICATE_MESSAGE = "This school URL has already been submitted."
RATE_LIMIT_MESSAGE = "You can only submit one school per day. Please try again tomorrow."
BUSY_MESSAGE = "Server is busy, please try again in a moment."
INTERNAL_ERROR_MESSAGE = (
    "An error occurred while processing your submission. Please try again later."
)
INVALID_PAYLOAD_MESSAGE = "Invalid submission payload."


class IntakeError(Exception):
    """Base class for failures reported back to the submitter."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SubmissionRejected(IntakeError):
    """The submission itself is unacceptable."""

    status_code = 400


class RateLimitExceeded(IntakeError):
    status_code = 429

    def __init__(self, decision: RateLimitDecision) -> None:
        super().__init__(RATE_LIMIT_MESSAGE)
        self.decision = decision


class ServerBusy(IntakeError):
    status_code = 500


@dataclass
class IntakeResult:
    """Response body, status and headers for one submission attempt."""

    status_code: int
    body: SubmissionResponse
    headers: Dict[str, str] = field(default_factory=dict)
    submission: Optional[SchoolSubmission] = None


def parse_payload(candidate: Any) -> SchoolSubmissionPayload:
    """Return ``candidate`` as a payload model, rejecting malformed bodies."""

    if isinstance(candidate, SchoolSubmissionPayload):
        return candidate

    if not isinstance(candidate, dict):
        raise SubmissionRejected(INVALID_PAYLOAD_MESSAGE)

    try:
        return SchoolSubmissionPayload.model_validate(candidate)
    except ValidationError as exc:
        raise SubmissionRejected(INVALID_PAYLOAD_MESSAGE) from exc


def validate_fields(payload: SchoolSubmissionPayload) -> None:
    """Run the checks that need no stored state, raising on the first failure."""

    if not (payload.school_name or "").strip() or not (payload.school_url or "").strip():
        raise SubmissionRejected(REQUIRED_MESSAGE)

    for field_name, label in _LENGTH_LABELS:
        value = getattr(payload, field_name)
        limit = MAX_LENGTHS[field_name]
        if value and len(value) > limit:
            raise SubmissionRejected(f"{label} must be {limit} characters or less.")

    if not is_absolute_url(payload.school_url.strip()):
        raise SubmissionRejected(INVALID_URL_MESSAGE)


def build_submission(payload: SchoolSubmissionPayload) -> SchoolSubmission:
    """Return the record to store, with sanitized text and a re-checked URL."""

    school_url = clean_url(payload.school_url)
    if not school_url:
        raise SubmissionRejected(INVALID_URL_MESSAGE)

    return SchoolSubmission(
        school_name=sanitize_text(payload.school_name),
        school_url=school_url,
        submitter_name=sanitize_text(payload.submitter_name),
        notes=sanitize_text(payload.notes),
    )


class SubmissionIntake:
    """Accept, validate and persist school submissions."""

    def __init__(self, store: SubmissionStore, rate_limiter: Optional[RateLimiter] = None) -> None:
        self.store = store
        self.rate_limiter = rate_limiter

    def submit(self, candidate: Any, client_id: str) -> IntakeResult:
        """Run ``candidate`` through the pipeline and describe the outcome.

        Never raises: every failure becomes an :class:`IntakeResult` with the
        matching status code and message.
        """

        headers: Dict[str, str] = {}
        try:
            if self.rate_limiter is not None:
                decision = self.rate_limiter.hit(client_id)
                headers.update(decision.headers())
                if not decision.allowed:
                    raise RateLimitExceeded(decision)

            submission = self._accept(candidate)
        except IntakeError as exc:
            if isinstance(exc, SubmissionRejected):
                logger.info("Rejected submission from %s: %s", client_id, exc.message)
            return IntakeResult(
                status_code=exc.status_code,
                body=SubmissionResponse(success=False, message=exc.message),
                headers=headers,
            )
        except Exception:
            logger.exception("Error processing school submission from %s", client_id)
            return IntakeResult(
                status_code=500,
                body=SubmissionResponse(success=False, message=INTERNAL_ERROR_MESSAGE),
                headers=headers,
            )

        logger.info("Accepted school submission %s (%s)", submission.id, submission.school_url)
        return IntakeResult(
            status_code=200,
            body=SubmissionResponse(success=True, message=SUCCESS_MESSAGE),
            headers=headers,
            submission=submission,
        )

    def _accept(self, candidate: Any) -> SchoolSubmission:
        payload = parse_payload(candidate)
        validate_fields(payload)

        try:
            with self.store.transaction() as transaction:
                if transaction.has_url(payload.school_url):
                    raise SubmissionRejected(DUPLICATE_MESSAGE)

                submission = build_submission(payload)
                transaction.append(submission)
        except StoreBusyError as exc:
            logger.warning("Store busy: %s", exc)
            raise ServerBusy(BUSY_MESSAGE) from exc

        return submission


__all__ = [
    "BUSY_MESSAGE",
    "DUPLICATE_MESSAGE",
    "INTERNAL_ERROR_MESSAGE",
    "INVALID_PAYLOAD_MESSAGE",
    "INVALID_URL_MESSAGE",
    "IntakeError",
    "IntakeResult",
    "MAX_LENGTHS",
    "RATE_LIMIT_MESSAGE",
    "REQUIRED_MESSAGE",
    "RateLimitExceeded",
    "SUCCESS_MESSAGE",
    "ServerBusy",
    "SubmissionIntake",
    "SubmissionRejected",
    "build_submission",
    "parse_payload",
    "validate_fields",
]
