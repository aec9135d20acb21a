"""Response error extraction for load test observability.

Parses Storefront API error responses into human-readable messages.
Handles two response shapes:

- Pydantic validation (422): {"detail": [{"loc": [...], "msg": "...", "type": "..."}]}
- Business errors (400/403/404/409/503): {"detail": {"code": "...", "message": "..."}}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def extract_error_detail(response: Response) -> str:
    """Extract a compact error message suitable for Locust failure lines."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    detail = body.get("detail") if isinstance(body, dict) else None

    # Pydantic validation errors
    if isinstance(detail, list):
        parts = []
        for err in detail:
            loc = ".".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", str(err))
            parts.append(f"{loc}: {msg}" if loc else msg)
        return " | ".join(parts)

    if isinstance(detail, dict):
        code = detail.get("code", "error")
        message = detail.get("message") or detail.get("errors") or ""
        reason = detail.get("reason")
        return f"{code}: {message}" + (f" ({reason})" if reason else "")

    return str(body)[:300]
