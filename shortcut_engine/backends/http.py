"""JSON-over-HTTP helper shared by the network backends."""

from __future__ import annotations

import json
from typing import Any, Mapping
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .base import CredentialRejectedError, DispatchError, TransportError


def _post_json(
    url: str,
    payload: Mapping[str, Any],
    headers: Mapping[str, str],
    timeout_s: float,
) -> dict[str, Any]:
    body = json.dumps(payload).encode("utf-8")
    req = Request(
        url,
        data=body,
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urlopen(req, timeout=timeout_s) as response:
            status_code = int(getattr(response, "status", 200))
            status_text = str(getattr(response, "reason", "") or "")
            raw = response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        raise _error_for_status(exc.code, str(exc.reason or ""), _read_error_body(exc)) from exc
    except URLError as exc:
        if isinstance(exc.reason, TimeoutError):
            raise TransportError(f"Request timeout after {timeout_s:g}s") from exc
        raise TransportError(f"Network error: {exc.reason}") from exc
    except TimeoutError as exc:
        raise TransportError(f"Request timeout after {timeout_s:g}s") from exc
    except OSError as exc:
        raise TransportError(f"Network error: {exc}") from exc

    if not 200 <= status_code < 300:
        raise _error_for_status(status_code, status_text, raw)
    try:
        decoded = json.loads(raw)
    except ValueError as exc:
        raise DispatchError(status_code, "Invalid JSON response", raw) from exc
    if not isinstance(decoded, dict):
        raise DispatchError(status_code, "Unexpected response shape", raw)
    return decoded


def _read_error_body(exc: HTTPError) -> str:
    if not exc.fp:
        return ""
    try:
        return exc.read().decode("utf-8", errors="replace")
    except Exception:
        return ""


def _error_for_status(status: int, status_text: str, body: str) -> DispatchError:
    if status in {401, 403}:
        return CredentialRejectedError(status, status_text, body)
    return DispatchError(status, status_text, body)
