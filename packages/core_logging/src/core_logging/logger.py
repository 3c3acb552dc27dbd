"""
Structured JSON logging for the gateway and its shared packages.

Every line is one JSON object: a flat envelope (``ts``, ``level``,
``service``, ``event`` plus the request-scoped keys in ``_TOP_LEVEL``) with
everything else nested under ``meta``.

Two emission modes, chosen by ``LOG_EMIT_MODE``:

* ``summary`` (default): stage breadcrumbs are counted per request and
  rolled up into one ``request_summary`` line at the end of the request.
  Request bookends, audit lines and error-like events are still written
  immediately.
* ``verbose``: every breadcrumb is written as it happens.
"""
import asyncio
import contextvars
import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import orjson

# ────────────────────────────────────────────────────────────
# Request context
# ────────────────────────────────────────────────────────────
_REQUEST_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("_REQUEST_ID", default=None)


def bind_request_id(request_id: Optional[str]) -> None:
    """Bind *request_id* to the current context; every later line carries it."""
    _REQUEST_ID.set(request_id)


def current_request_id() -> Optional[str]:
    return _REQUEST_ID.get()


class _RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            rid = _REQUEST_ID.get()
            if rid:
                record.request_id = rid
        return True


# ────────────────────────────────────────────────────────────
# Event classification
# ────────────────────────────────────────────────────────────
_ERROR_WORDS = ("error", "failed", "exception", "violation", "timeout", "unreachable")


def _summary_mode() -> bool:
    return os.getenv("LOG_EMIT_MODE", "summary").lower() in ("summary", "summarize", "compact")


def _summaries_enabled() -> bool:
    """``LOG_SUMMARY_EMIT=0`` silences the end-of-request rollups."""
    return os.getenv("LOG_SUMMARY_EMIT", "1").lower() in ("1", "true", "yes", "on")


def _is_error_like(event: str, extras: Dict[str, Any]) -> bool:
    if "error" in extras or extras.get("level") == "ERROR":
        return True
    try:
        if int(extras.get("status_code", 200)) >= 500:
            return True
    except (TypeError, ValueError):
        pass
    ev = (event or "").lower()
    # Backend rejections are ordinary outcomes for the caller, not gateway faults.
    if ev.endswith("rejected"):
        return False
    return any(w in ev for w in _ERROR_WORDS)


def _always_emit(stage: str, event: str) -> bool:
    if stage == "audit":
        return True
    return stage == "request" and event in ("request_start", "request_end")


# ────────────────────────────────────────────────────────────
# Per-request aggregation
# ────────────────────────────────────────────────────────────
# Identifiers copied from breadcrumbs onto the request summary.
_SUMMARY_KEYS = ("request_id", "operation", "artifact", "container", "node_a", "outcome")


class _RequestTally:
    __slots__ = ("events", "latencies", "ids", "errors")

    def __init__(self) -> None:
        self.events: Dict[str, Dict[str, int]] = {}
        self.latencies: Dict[str, List[float]] = {}
        self.ids: Dict[str, Any] = {}
        self.errors: List[Dict[str, Any]] = []

    def note(self, stage: str, event: str, extras: Dict[str, Any]) -> None:
        per_stage = self.events.setdefault(stage, {})
        per_stage[event] = per_stage.get(event, 0) + 1
        latency = extras.get("latency_ms")
        if isinstance(latency, (int, float)):
            self.latencies.setdefault(stage, []).append(float(latency))
        for k in _SUMMARY_KEYS:
            v = extras.get(k)
            if isinstance(v, str) and v:
                self.ids[k] = v
        if stage == "request":
            for k in ("method", "path"):
                if isinstance(extras.get(k), str) and extras[k]:
                    self.ids[k] = extras[k]
        if _is_error_like(event, extras):
            self.errors.append({
                "code": str(extras.get("error_code") or event),
                "where": stage,
                "message": str(extras.get("error_message") or extras.get("error") or event),
            })

    def timers(self) -> Dict[str, Dict[str, float]]:
        out: Dict[str, Dict[str, float]] = {}
        for stage, vals in self.latencies.items():
            if not vals:
                continue
            srt = sorted(vals)
            out[stage] = {
                "count": len(srt),
                "sum_ms": round(sum(srt), 3),
                "p50_ms": round(srt[(len(srt) - 1) // 2], 3),
                "max_ms": round(srt[-1], 3),
            }
        return out


_TALLY: contextvars.ContextVar[Optional[_RequestTally]] = contextvars.ContextVar("_TALLY", default=None)


def _tally() -> _RequestTally:
    t = _TALLY.get()
    if t is None:
        t = _RequestTally()
        _TALLY.set(t)
    return t


def _summary_service(logger: logging.Logger, service: Optional[str]) -> str:
    return service or os.getenv("SERVICE_NAME") or logger.name


def emit_request_summary(logger: logging.Logger, *, service: Optional[str] = None) -> None:
    """Write the per-request rollup (summary mode only) and reset the tally."""
    t = _TALLY.get()
    if t is None or not _summary_mode() or not _summaries_enabled():
        return
    payload: Dict[str, Any] = {
        "stage": "summary",
        "service": _summary_service(logger, service),
        "counts": {stage: sum(evs.values()) for stage, evs in t.events.items()},
        "events": t.events,
        "timers": t.timers(),
        **t.ids,
        "error_count": len(t.errors),
    }
    if not payload.get("request_id") and current_request_id():
        payload["request_id"] = current_request_id()
    logger.info("request_summary", extra=_sanitize_extra(payload))
    _TALLY.set(None)


def emit_request_error_summary(logger: logging.Logger, *, service: Optional[str] = None) -> None:
    """One ERROR line listing the errors the current request collected; no-op when there were none."""
    t = _TALLY.get()
    if t is None or not t.errors or not _summaries_enabled():
        return
    errors = [{k: v for k, v in e.items() if v is not None} for e in t.errors]
    payload: Dict[str, Any] = {
        "stage": "summary",
        "service": _summary_service(logger, service),
        "error_count": len(errors),
        "errors": errors[:50],
        "cause": str(errors[0].get("code") or "unknown").lower().split(".", 1)[0],
    }
    if current_request_id():
        payload["request_id"] = current_request_id()
    logger.error("request_error_summary", extra=_sanitize_extra(payload))


def record_error(
    code: str,
    *,
    where: str,
    message: str,
    logger: logging.Logger,
    action: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    level: str = "ERROR",
    **extras: Any,
) -> None:
    """
    Write one normalized error line and remember it for the end-of-request
    rollup.  Safe to call from any failure path.
    """
    crumb: Dict[str, Any] = {"code": str(code), "where": str(where), "message": str(message)}
    if action:
        crumb["action"] = action
    if isinstance(context, dict):
        crumb["context"] = context
    _tally().errors.append(crumb)

    payload = {
        "stage": extras.pop("stage", None) or "error",
        "error_code": crumb["code"],
        "error_message": message,
        **{k: v for k, v in crumb.items() if k not in ("code", "message")},
        **extras,
    }
    levelno = getattr(logging, (level or "ERROR").upper(), logging.ERROR)
    logger.log(levelno, "error", extra=_sanitize_extra(payload))


# ────────────────────────────────────────────────────────────
# Formatting
# ────────────────────────────────────────────────────────────
# LogRecord attributes that extras must not overwrite
_RESERVED: set[str] = {
    "name", "msg", "args", "levelname", "levelno",
    "pathname", "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message", "asctime",
    "taskName",
}

# Envelope keys kept at the top level; everything else nests under ``meta``
_TOP_LEVEL: set[str] = {
    "ts", "level", "service", "stage", "latency_ms", "request_id",
    "operation", "outcome", "artifact", "container", "message",
    "status_code", "path", "method",
}


def _default(obj):
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="ignore")
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME", record.name),
            "event": record.getMessage(),
        }
        meta: Dict[str, Any] = {}
        for key, val in record.__dict__.items():
            if key in _RESERVED or key == "message_extra":
                continue
            (line if key in _TOP_LEVEL else meta)[key] = val
        if "message_extra" in record.__dict__:
            line["message"] = record.__dict__["message_extra"]
        if record.exc_info:
            meta["exc_text"] = self.formatException(record.exc_info)
        if meta:
            line["meta"] = meta
        return orjson.dumps(line, default=_default).decode("utf-8")


def _sanitize_extra(extra: Dict[str, Any] | None) -> Dict[str, Any]:
    """
    Make *extra* safe to hand to ``logging``: ``message`` becomes
    ``message_extra``, other reserved names become ``meta_<key>``, and a
    nested ``meta`` dict is flattened.
    """
    if not extra:
        return {}
    safe: Dict[str, Any] = {}
    for k, v in extra.items():
        key = str(k)
        if key == "meta" and isinstance(v, dict):
            for mk, mv in v.items():
                mk = str(mk)
                safe[f"meta_{mk}" if mk in _RESERVED else mk] = mv
        elif key == "message":
            safe["message_extra"] = v
        elif key in _RESERVED:
            safe[f"meta_{key}"] = v
        else:
            safe[key] = v
    return safe


class StructuredLogger(logging.Logger):
    """``logging.Logger`` that also takes fields as keyword arguments: ``logger.info("sent", operation="payment")``."""

    def _log(  # noqa: PLR0913
        self,
        level: int,
        msg: str,
        args,
        exc_info=None,
        extra: Dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **kwargs: Any,
    ) -> None:
        if kwargs:
            extra = {**(extra or {}), **kwargs}
        super()._log(level, msg, args, exc_info=exc_info, extra=_sanitize_extra(extra),
                     stack_info=stack_info, stacklevel=stacklevel)


class DynamicStdoutHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stdout`` is at emit time, so redirected stdout still captures lines."""

    def emit(self, record: logging.LogRecord) -> None:
        # Plain assignment: setStream() would flush the old stream, which may be closed.
        if self.stream is not sys.stdout:
            self.stream = sys.stdout
        super().emit(record)


logging.setLoggerClass(StructuredLogger)


def get_logger(name: str = "app", level: str | None = None) -> logging.Logger:
    """
    Top-level names (no dot) own a JSON stdout handler; dotted names
    propagate to their parent.
    """
    logger = logging.getLogger(name)
    if "." not in name:
        if not logger.handlers:
            handler = DynamicStdoutHandler()
            handler.setFormatter(JsonFormatter())
            logger.addHandler(handler)
        logger.propagate = False
    else:
        for h in list(logger.handlers):
            logger.removeHandler(h)
        logger.propagate = True

    logger.setLevel(level or os.getenv("SERVICE_LOG_LEVEL", "INFO"))
    if not any(isinstance(f, _RequestIdFilter) for f in logger.filters):
        logger.addFilter(_RequestIdFilter())
    return logger


# ────────────────────────────────────────────────────────────
# Stage logging
# ────────────────────────────────────────────────────────────
def _emit(logger: logging.Logger, stage: str, event: str, **extras: Any) -> None:
    payload = {"stage": stage, **extras}
    _tally().note(stage, event, payload)
    error_like = _is_error_like(event, payload)
    if _summary_mode() and not error_like and not _always_emit(stage, event):
        return
    logger.log(logging.WARNING if error_like else logging.INFO, event, extra=_sanitize_extra(payload))


def log_stage(logger: logging.Logger, stage: str, event: str, **fixed: Any):
    """
    Log one pipeline breadcrumb.

    * imperative: ``log_stage(logger, "send", "verb_fallback", operation="analyze")``
    * decorator:  ``@log_stage(logger, "assemble", "payment")`` adds an
      ``<event>.done`` line with ``latency_ms`` after each call
    * context manager: ``with log_stage(...).ctx(**more):`` brackets a block
      with ``<event>.start`` / ``<event>.done``
    """
    _emit(logger, stage, event, **fixed)

    def _decorator(fn):
        if asyncio.iscoroutinefunction(fn):
            async def _async_wrapper(*a, **kw):
                t0 = time.perf_counter()
                try:
                    return await fn(*a, **kw)
                finally:
                    _emit(logger, stage, f"{event}.done",
                          latency_ms=(time.perf_counter() - t0) * 1000, **fixed)
            return _async_wrapper

        def _wrapper(*a, **kw):
            t0 = time.perf_counter()
            try:
                return fn(*a, **kw)
            finally:
                _emit(logger, stage, f"{event}.done",
                      latency_ms=(time.perf_counter() - t0) * 1000, **fixed)
        return _wrapper

    @contextmanager
    def _ctx(**dynamic):
        fields = fixed | dynamic
        _emit(logger, stage, f"{event}.start", **fields)
        t0 = time.perf_counter()
        try:
            yield
        finally:
            _emit(logger, stage, f"{event}.done",
                  latency_ms=(time.perf_counter() - t0) * 1000, **fields)

    _decorator.ctx = _ctx
    return _decorator


_ONCE_KEYS: set[str] = set()


def log_once_process(logger: logging.Logger, key: str, *, level: int = logging.INFO, event: str, **kwargs: Any) -> None:
    """Write a line at most once per *key* for the life of the process."""
    if key in _ONCE_KEYS:
        return
    _ONCE_KEYS.add(key)
    logger.log(level, event, extra=_sanitize_extra(kwargs))
