from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from ..intake import SubmissionIntake

router = APIRouter(tags=["submissions"])

UNKNOWN_CLIENT = "unknown"


def client_identity(request: Request, *, trust_proxy_headers: bool = False) -> str:
    """Return the network origin used as the rate limit key."""

    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def get_intake(request: Request) -> SubmissionIntake:
    return request.app.state.intake


@router.post("/submit-school")
def submit_school(request: Request, candidate: Any = Body(default=None)):
    intake = get_intake(request)
    identity = client_identity(
        request, trust_proxy_headers=request.app.state.settings.trust_proxy_headers
    )
    result = intake.submit(candidate, identity)
    return JSONResponse(
        status_code=result.status_code,
        content=result.body.model_dump(),
        headers=result.headers,
    )
