from __future__ import annotations

import copy
import logging
from typing import Any

from service import logging_utils as _logging_backend

from .utils import scrub_proxy_url

# Keys that should be redacted from structured logs
_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "auth",
    "bearer",
    "cookie",
    "cookies",
    "proxy_password",
}

# Keys whose values are proxy URLs: keep host/port, drop user-info
_PROXY_KEYS = {"proxy", "proxy_url", "proxies", "proxy_urls"}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow-copy record and redact obvious secret-like fields at top level.
    Proxy URLs keep their host but lose credentials.
    """
    redacted = copy.copy(record)
    for k in list(redacted.keys()):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_secret"):
            redacted[k] = "***REDACTED***"
        elif lk in _PROXY_KEYS:
            v = redacted[k]
            if isinstance(v, (list, tuple)):
                redacted[k] = [scrub_proxy_url(str(p)) for p in v]
            elif isinstance(v, str):
                redacted[k] = scrub_proxy_url(v)
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record through service.logging_utils.
    Falls back to stdlib logging as structured info if the write fails.
    """
    payload = _redact_record(record)
    try:
        _logging_backend.write_activity_log(payload)
        return
    except Exception:
        logging.getLogger("jobs_crawler.activity").debug("activity log write failed", exc_info=True)
    logging.getLogger("jobs_crawler.activity").info(payload)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record through service.logging_utils.
    Falls back to stdlib logging as structured error if the write fails.
    """
    payload = _redact_record(record)
    try:
        _logging_backend.write_error_log(payload)
        return
    except Exception:
        logging.getLogger("jobs_crawler.error").debug("error log write failed", exc_info=True)
    logging.getLogger("jobs_crawler.error").error(payload)
