"""
Utility functions for exception logging that never raise themselves.

Upstream failures usually wrap an httpx transport error in ``__cause__``;
both the wrapper and its cause end up in the log line.
"""

import logging


def _safe_str(obj) -> str:
    """Convert an object to string, falling back when __str__ or __repr__ fail."""
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def format_exception_message(exception: BaseException) -> str:
    """
    Format an exception message including its cause and, for exception
    groups, the sub-exceptions.

    Args:
        exception: The exception to format

    Returns:
        A formatted string describing the exception
    """
    if exception is None:
        return "None"

    message = f"{type(exception).__name__}: {_safe_str(exception)}"

    cause = getattr(exception, "__cause__", None)
    if cause is not None:
        message += f" (caused by {type(cause).__name__}: {_safe_str(cause)})"

    subs = _sub_exceptions(exception)
    if subs:
        joined = "; ".join(f"{type(s).__name__}: {_safe_str(s)}" for s in subs)
        message += f" (Sub-exceptions: {joined})"

    return message


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
    exc_info: bool = False,
) -> None:
    """
    Log an exception with its cause and sub-exceptions.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]", "[Fallback]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
        exc_info: Attach the traceback to the log record
    """
    try:
        logger.log(
            level,
            f"{prefix} {format_exception_message(exception)}",
            exc_info=exception if exc_info else None,
        )
    except Exception:
        try:
            logger.log(level, f"{prefix} Exception (logging failed)")
        except Exception:
            # Logging itself is broken; nothing left to report to
            pass
