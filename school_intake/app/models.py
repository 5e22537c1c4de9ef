import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SubmissionStatus = Literal["pending", "approved", "rejected"]


def _new_submission_id() -> str:
    return uuid.uuid4().hex


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SchoolSubmission(BaseModel):
    """A school suggested through the public submission form."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=_new_submission_id)
    school_name: str = Field(alias="schoolName")
    school_url: str = Field(alias="schoolUrl")
    submitter_name: str = Field(default="", alias="submitterName")
    notes: str = ""
    submitted_at: str = Field(default_factory=_utc_timestamp, alias="submittedAt")
    status: SubmissionStatus = "pending"

    def to_record(self) -> dict:
        """Return the camelCase mapping stored on disk."""
        return self.model_dump(by_alias=True)
