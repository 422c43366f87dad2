"""Fetch a remote JSON document on behalf of the browser client."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import requests

from .errors import RogainizerError, ValidationError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15


class UpstreamError(RogainizerError):
    status_code = 502


class UpstreamTimeout(RogainizerError):
    status_code = 504


def _check_url(raw: Any) -> str:
    url = str(raw or "").strip()
    if not url:
        raise ValidationError('Query parameter "url" is required.')
    try:
        parts = urlsplit(url)
        _ = parts.port
    except ValueError:
        raise ValidationError("Invalid URL.") from None
    scheme = parts.scheme.lower()
    if not scheme:
        raise ValidationError("Invalid URL.")
    if scheme not in ("http", "https"):
        raise ValidationError("Only HTTP/HTTPS URLs are allowed.")
    if not parts.hostname:
        raise ValidationError("Invalid URL.")
    return url


def fetch_json(raw_url: Any, timeout: float = DEFAULT_TIMEOUT, session=None) -> Any:
    url = _check_url(raw_url)
    http = session or requests
    try:
        resp = http.get(url, timeout=timeout, headers={"Accept": "application/json"})
    except requests.Timeout:
        raise UpstreamTimeout("Timed out while fetching JSON.") from None
    except requests.RequestException as exc:
        logger.warning("json_loader fetch failed url=%s error=%s", url, exc)
        raise UpstreamError("Unable to fetch JSON from URL.") from None

    if not resp.ok:
        raise UpstreamError(f"Failed to fetch JSON (status {resp.status_code}).")
    content_type = resp.headers.get("content-type") or ""
    if "application/json" not in content_type.lower():
        raise UpstreamError("Remote URL did not return JSON.")
    try:
        return resp.json()
    except ValueError:
        raise UpstreamError("Unable to fetch JSON from URL.") from None
