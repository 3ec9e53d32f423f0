"""Core session engine pieces — session state tables and logging.

This package is framework-agnostic. It must NEVER import from ``bot/`` or ``sdk/``.
"""

from core.logger import TgflowLogger
from core.state import (
    CallbackTable,
    Continuation,
    SessionState,
    SlotBusyError,
    WaitingTable,
    WaitPolicy,
    call_handler,
)

__all__ = [
    "TgflowLogger",
    "CallbackTable",
    "Continuation",
    "SessionState",
    "SlotBusyError",
    "WaitingTable",
    "WaitPolicy",
    "call_handler",
]
