from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

if __package__ in {None, ""}:
    # Allow ``python school_intake/server.py`` to work by ensuring the project
    # root is on ``sys.path`` before importing the package modules.
    project_root = Path(__file__).resolve().parent.parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))
    from school_intake.app import config  # type: ignore
    from school_intake.app.intake import INVALID_PAYLOAD_MESSAGE, SubmissionIntake  # type: ignore
    from school_intake.app.rate_limit import InMemoryRateLimiter, RateLimiter  # type: ignore
    from school_intake.app.routes import submissions  # type: ignore
    from school_intake.app.storage import JsonFileStore, LogOnlyStore, SubmissionStore  # type: ignore
else:  # pragma: no cover - exercised only during normal package imports
    from .app import config
    from .app.intake import INVALID_PAYLOAD_MESSAGE, SubmissionIntake
    from .app.rate_limit import InMemoryRateLimiter, RateLimiter
    from .app.routes import submissions
    from .app.storage import JsonFileStore, LogOnlyStore, SubmissionStore

logger = logging.getLogger(__name__)


def _prepare_cors_settings(origins: List[str]) -> Tuple[List[str], Optional[str]]:
    """Split configured origins into explicit entries and a wildcard regex."""

    allow_all_origins = "*" in origins or not origins
    normalized_origins = [origin for origin in origins if origin != "*"]
    return normalized_origins, ".*" if allow_all_origins else None


def build_store(settings: config.Settings) -> SubmissionStore:
    """Return the storage backend selected by ``STORAGE_BACKEND``."""

    if settings.storage_backend == "log":
        logger.info("Submissions will be logged only, nothing is persisted")
        return LogOnlyStore()

    return JsonFileStore(
        settings.data_file,
        retries=settings.lock_retries,
        factor=settings.lock_factor,
        min_timeout=settings.lock_min_timeout,
        max_timeout=settings.lock_max_timeout,
    )


def create_app(
    settings: Optional[config.Settings] = None,
    *,
    store: Optional[SubmissionStore] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Build the FastAPI application.

    ``store`` and ``rate_limiter`` default to the backends described by
    ``settings``; tests pass their own to avoid touching the real data file.
    """

    settings = settings or config.load_settings()
    logging.getLogger().setLevel(getattr(logging, settings.log_level, logging.INFO))

    if store is None:
        store = build_store(settings)
    if rate_limiter is None:
        rate_limiter = InMemoryRateLimiter(
            limit=settings.rate_limit_max,
            window_seconds=settings.rate_limit_window_seconds,
        )

    app = FastAPI(title="School Submission Intake")
    app.state.settings = settings
    app.state.intake = SubmissionIntake(store, rate_limiter)

    allowed_origins, origin_regex = _prepare_cors_settings(list(settings.cors_origins))
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=allowed_origins,
        allow_origin_regex=origin_regex,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Malformed request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": INVALID_PAYLOAD_MESSAGE},
        )

    app.include_router(submissions.router)
    return app


def main() -> None:
    import uvicorn

    settings = config.load_settings()
    logger.info("Server running at http://localhost:%s/", settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


if __name__ == "__main__":
    main()
