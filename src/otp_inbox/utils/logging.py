"""Logging for the otp_inbox services.

Loggers live under the ``otp_inbox`` namespace. ``OTP_LOG_LEVEL`` sets the
default level and ``OTP_LOG_PLAIN=1`` swaps the rich console handler for a
plain stderr stream (useful when logs go to a collector).
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union

from rich.logging import RichHandler

from otp_inbox.utils.env import get_env

NAMESPACE = "otp_inbox"
_TRUE = {"1", "true", "yes", "on"}


def resolve_level(level: Union[int, str, None] = None) -> int:
    """Turn a level name or number into a number, falling back to OTP_LOG_LEVEL."""
    if level is None:
        level = get_env("OTP_LOG_LEVEL", default="INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level {level!r}")
    return resolved


def get_logger(
    name: str,
    level: Union[int, str, None] = None,
    *,
    rich: Optional[bool] = None,
) -> logging.Logger:
    """Configure and return ``otp_inbox.<name>``; configuration happens once per name."""
    logger = logging.getLogger(f"{NAMESPACE}.{name}")
    if logger.handlers:
        return logger

    level = resolve_level(level)
    if rich is None:
        rich = (get_env("OTP_LOG_PLAIN", default="") or "").lower() not in _TRUE
    logger.setLevel(level)

    if rich:
        # Subjects and IMAP replies are untrusted text, so no console markup.
        handler: logging.Handler = RichHandler(
            level=level,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(name)s %(levelname)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def mask_code(code: str) -> str:
    """Hide all but the last two digits of a code for log output."""
    return "*" * max(len(code) - 2, 0) + code[-2:]
