from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SchoolSubmissionPayload(BaseModel):
    """Raw form fields posted to ``/submit-school``."""

    model_config = ConfigDict(populate_by_name=True)

    school_name: Optional[str] = Field(default=None, alias="schoolName")
    school_url: Optional[str] = Field(default=None, alias="schoolUrl")
    submitter_name: Optional[str] = Field(default=None, alias="submitterName")
    notes: Optional[str] = None

    @field_validator("school_name", "school_url", "submitter_name", "notes", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, bool):
            raise ValueError("Expected a text value")
        if isinstance(value, (int, float)):
            return str(value)
        raise ValueError("Expected a text value")


class SubmissionResponse(BaseModel):
    success: bool
    message: str


class SchoolStoreDocument(BaseModel):
    """Shape of the JSON store file.

    Existing records are kept as plain mappings so entries written by older
    releases survive a rewrite untouched.
    """

    schools: List[Dict[str, Any]] = Field(default_factory=list)
