"""Turn FreshRoute API error bodies into one-line Locust failure messages.

Two body shapes come back:

* FastAPI request validation (422): ``{"detail": [{"loc": [...], "msg": "..."}]}``
* Engine errors: ``{"error": {"credit": ["..."], "stock": ["..."]}}``
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response

_MAX_CHARS = 300


def _flatten(messages) -> str:
    if isinstance(messages, list):
        return "; ".join(str(message) for message in messages)
    return str(messages)


def _request_validation(detail: list) -> str:
    parts = []
    for err in detail:
        loc = ".".join(str(part) for part in err.get("loc", []) if part != "body")
        parts.append(f"{loc}: {err.get('msg', err)}" if loc else str(err.get("msg", err)))
    return " | ".join(parts)


def extract_error_detail(response: Response) -> str:
    """Compact description of an error response, never longer than 300 characters."""
    try:
        body = response.json()
    except ValueError:
        return (getattr(response, "text", "") or "(empty response body)")[:_MAX_CHARS]

    if isinstance(body.get("detail"), list):
        return _request_validation(body["detail"])[:_MAX_CHARS]

    error = body.get("error")
    if isinstance(error, dict):
        return " | ".join(f"{field}: {_flatten(messages)}" for field, messages in error.items())[:_MAX_CHARS]
    if error is not None:
        return str(error)[:_MAX_CHARS]
    return str(body)[:_MAX_CHARS]
