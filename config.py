"""Application configuration — environment variables and derived constants.

Loads ``BOT_TOKEN`` and the polling / session tunables from the environment
via ``python-dotenv``.  All values are resolved at import time so other
modules can ``from config import …`` without repeated lookups.
"""

# ── stdlib ───────────────────────────────────────────────────────────────────
import os

# ── third-party ──────────────────────────────────────────────────────────────
from dotenv import load_dotenv

# ── core ─────────────────────────────────────────────────────────────────────
from core.logger import TgflowLogger

# ── Environment bootstrap ────────────────────────────────────────────────────
load_dotenv()

# ── Logger (used for startup diagnostics at the bottom of this module) ───────
logger = TgflowLogger.get_logger()


# ── Helper functions (private) ───────────────────────────────────────────────


def _parse_int(name: str, default: int, minimum: int = 0) -> int:
    """Read an integer environment variable, falling back to *default*.

    Values that are not integers or fall below *minimum* are rejected with a
    warning so a typo in ``.env`` never stops the bot from starting.
    """
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Invalid integer in environment, using default", extra={"variable": name, "value": raw, "default": default})
        return default
    if value < minimum:
        logger.warning("Value below minimum, using default", extra={"variable": name, "value": value, "default": default})
        return default
    return value


def _parse_float(name: str, default: float) -> float:
    """Read a non-negative float environment variable, falling back to *default*."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        logger.warning("Invalid number in environment, using default", extra={"variable": name, "value": raw, "default": default})
        return default
    return value if value >= 0 else default


def _parse_wait_policy(raw: str | None) -> str:
    """Return ``"replace"`` or ``"reject"``; anything else means ``"replace"``."""
    value = (raw or "replace").strip().lower()
    if value not in ("replace", "reject"):
        logger.warning("Unknown WAIT_POLICY, using 'replace'", extra={"value": raw})
        return "replace"
    return value


# ── Public constants ─────────────────────────────────────────────────────────

BOT_TOKEN: str | None = os.environ.get("BOT_TOKEN")
BASE_URL: str = f"https://api.telegram.org/bot{BOT_TOKEN or ''}"

POLL_TIMEOUT: int = _parse_int("POLL_TIMEOUT", 50)
POLL_MAX_INFLIGHT: int = _parse_int("POLL_MAX_INFLIGHT", 1, minimum=1)
POLL_RETRY_DELAY: float = _parse_float("POLL_RETRY_DELAY", 5.0)
REQUEST_TIMEOUT: int = _parse_int("REQUEST_TIMEOUT", 10, minimum=1)

# 0 disables expiry of inline-keyboard callbacks.
CALLBACK_TTL: float = _parse_float("CALLBACK_TTL", 0.0)
WAIT_POLICY: str = _parse_wait_policy(os.environ.get("WAIT_POLICY"))


# ── Startup diagnostics ─────────────────────────────────────────────────────

if BOT_TOKEN:
    logger.info("Config loaded — BOT_TOKEN is set, BASE_URL ready")
else:
    logger.warning("Config loaded — BOT_TOKEN is NOT set")

logger.info(
    "Polling settings resolved",
    extra={
        "poll_timeout": POLL_TIMEOUT,
        "max_inflight": POLL_MAX_INFLIGHT,
        "retry_delay": POLL_RETRY_DELAY,
        "callback_ttl": CALLBACK_TTL,
        "wait_policy": WAIT_POLICY,
    },
)
