"""
Request parameters for query endpoints.

Flat name -> value mapping built from the query string and, for requests
with a body, JSON object or form fields. Query string wins on conflicts.
"""

from typing import Any

from starlette.requests import Request


async def _read_body(request: Request) -> dict[str, Any]:
    """Read JSON or form body; return {} on no body or unsupported type."""
    ct = (request.headers.get("content-type") or "").split(";")[0].strip().lower()
    if ct == "application/json":
        try:
            raw = await request.json()
        except ValueError:
            return {}
        return raw if isinstance(raw, dict) else {}
    if ct in ("application/x-www-form-urlencoded", "multipart/form-data"):
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}
    return {}


async def parse_params(request: Request) -> dict[str, Any]:
    """Merge body fields and query string (query string overrides body)."""
    out: dict[str, Any] = {}
    if request.method in ("POST", "PUT", "PATCH"):
        out.update(await _read_body(request))
    out.update(request.query_params)
    return out
