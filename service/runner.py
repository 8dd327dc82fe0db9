# service/runner.py
from __future__ import annotations

import importlib
import json
import logging
import os
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from service.logging_utils import write_activity_log

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def now_iso() -> str:
    return datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")


def _maybe_bool(v: Any) -> Any:
    if isinstance(v, str):
        low = v.strip().lower()
        if low in ("true", "t", "yes", "y", "1"):
            return True
        if low in ("false", "f", "no", "n", "0"):
            return False
    return v


def _maybe_number(v: Any) -> Any:
    if isinstance(v, str):
        s = v.strip()
        if s and (s.isdigit() or (s.startswith("-") and s[1:].isdigit())):
            return int(s)
        try:
            return float(s)
        except ValueError:
            pass
    return v


def _normalize_kwargs_types(kwargs: dict[str, object] | None) -> dict[str, object]:
    """
    Normalize module kwargs right before module.run(**kwargs):

      • Keys ending with "_env": the string value is an ENV VAR NAME; it is
        replaced with os.getenv(<name>, "") and kept as a string.
      • Other string values: JSON-looking ({...} / [...]) strings are parsed,
        otherwise common bool/number forms are coerced.
      • Non-strings are left unchanged.
    """
    if not kwargs:
        return {}

    normalized: dict[str, object] = {}
    for k, v in kwargs.items():
        if isinstance(k, str) and k.endswith("_env") and isinstance(v, str):
            normalized[k] = os.getenv(v.strip(), "")
            continue

        if isinstance(v, str):
            s = v.strip()
            if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
                try:
                    normalized[k] = json.loads(s)
                    continue
                except ValueError:
                    # fall through to bool/number coercion
                    pass
            normalized[k] = _maybe_number(_maybe_bool(s))
        else:
            normalized[k] = v

    return normalized


def _resolve_callable(module_path: str) -> Callable[..., Any]:
    """Import module and return its `run` callable."""
    mod = importlib.import_module(module_path)
    if not hasattr(mod, "run") or not callable(mod.run):
        raise AttributeError(f"Module {module_path!r} does not define a callable `run(**kwargs)`.")
    return mod.run  # type: ignore[no-any-return]


def _emit_activity_jsonl(record: dict[str, Any]) -> None:
    try:
        write_activity_log(record)
    except Exception as e:
        log.error("Failed to write activity JSONL: %s", e)


@dataclass
class RunResult:
    ok: bool
    message: str
    meta: dict[str, Any] | None = None


def _coerce_result(value: Any) -> RunResult:
    """
    Normalize module return into a RunResult.

    Acceptable shapes:
      - dict   -> meta (may include 'message')
      - None   -> no output
    """
    if value is None:
        return RunResult(ok=True, message="OK", meta=None)
    if isinstance(value, dict):
        return RunResult(ok=True, message=str(value.get("message", "OK")), meta=value)
    raise TypeError("Module return must be a dict (meta) or None.")


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------
def run_module_once(
    module: str,
    kwargs: dict[str, object] | None = None,
    trigger_type: str = "adhoc",
    job_context: dict[str, object] | None = None,
    timeout_sec: int | None = None,
) -> tuple[dict[str, Any] | None, str]:
    """
    Execute a module's run(**kwargs) once.

    Returns:
        (meta_or_none, run_id)
    Raises:
        Propagates exceptions from module execution (caller/CLI will catch and log).
    """
    run_id = uuid.uuid4().hex
    started_at = now_iso()

    context: dict[str, Any] = {
        "run_id": run_id,
        "module": module,
        "trigger_type": trigger_type,
        "started_at": started_at,
    }
    if job_context:
        context.update({k: v for k, v in job_context.items() if k not in context})

    kw = _normalize_kwargs_types(kwargs)
    run_callable = _resolve_callable(module)

    # Execute with optional timeout in a worker thread
    result: RunResult
    exc: BaseException | None = None

    t0 = datetime.now()
    try:
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="runner") as pool:
            fut = pool.submit(run_callable, **kw)
            value = fut.result(timeout=timeout_sec) if timeout_sec else fut.result()
        result = _coerce_result(value)
    except FutureTimeout:
        exc = TimeoutError(f"Module run timed out after {timeout_sec}s")
        result = RunResult(ok=False, message=str(exc), meta={"timeout_sec": timeout_sec})
    except BaseException as e:
        exc = e
        result = RunResult(ok=False, message=str(e), meta={"exception_type": type(e).__name__})
    duration_ms = int((datetime.now() - t0).total_seconds() * 1000)

    _emit_activity_jsonl({
        "ts": now_iso(),
        "run_id": run_id,
        "module": module,
        "trigger_type": trigger_type,
        "ok": result.ok,
        "message": result.message,
        "duration_ms": duration_ms,
        "context": context,
        "kwargs": kw,
        "meta": result.meta or {},
    })

    # If there was an exception, re-raise so CLI can handle exit code/logging
    if exc:
        raise exc

    return result.meta, run_id
