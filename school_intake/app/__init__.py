"""Application helpers for the school submission intake service.

The modules here hold the building blocks of the ``POST /submit-school``
pipeline.  ``school_intake.server`` wires them into a FastAPI application so
the deployment entry-point stays small while the pipeline pieces remain easy
to test on their own.
"""

from . import config, intake, models, rate_limit, sanitization, schemas, storage

__all__ = [
    "config",
    "intake",
    "models",
    "rate_limit",
    "sanitization",
    "schemas",
    "storage",
]
