"""Logging helpers and instrumentation decorators.

Uses the stdlib ``portfolio_sim_engine`` logger. Handlers are left to the
embedding application (the CLI configures ``logging.basicConfig``).
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable


engine_logger = logging.getLogger("portfolio_sim_engine")


def log_operation(name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Log start/finish of an operation at debug level."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            engine_logger.debug("[%s] started", name)
            result = fn(*args, **kwargs)
            engine_logger.debug("[%s] completed", name)
            return result

        return wrapper

    return deco


def log_timing(threshold: float = 0.0) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Warn when the wrapped call takes longer than ``threshold`` seconds."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed = time.perf_counter() - start
                if threshold and elapsed > threshold:
                    engine_logger.warning(
                        "slow_operation: %s took %.3fs (threshold %.3fs)",
                        fn.__qualname__,
                        elapsed,
                        threshold,
                    )

        return wrapper

    return deco


def log_errors(severity: str = "medium") -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Log exceptions escaping the wrapped call, then re-raise them."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                engine_logger.error(
                    "[%s] %s failed: %s: %s",
                    severity,
                    fn.__qualname__,
                    type(exc).__name__,
                    exc,
                )
                raise

        return wrapper

    return deco


def log_portfolio_operation(
    event: str,
    details: dict[str, Any] | None = None,
    execution_time: float | None = None,
) -> dict[str, Any]:
    if details:
        engine_logger.info("[%s] %s", event, details)
    else:
        engine_logger.info("[%s]", event)
    return {"event": event, "details": details or {}, "execution_time": execution_time}


def log_critical_alert(
    alert_type: str,
    severity: str,
    message: str,
    action: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    engine_logger.warning(
        "critical_alert[%s/%s]: %s %s%s",
        alert_type,
        severity,
        message,
        details or {},
        f" -> {action}" if action else "",
    )
