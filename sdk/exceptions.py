"""Exception hierarchy for the tgflow Telegram SDK."""

from typing import Any, Dict, Optional


class APIException(Exception):
    """The Telegram Bot API rejected a call (non-2xx status or ``ok: false``).

    Attributes:
        status_code: HTTP status code returned by the API.
        response_body: Raw response body as a dict, when available.
        description: The API's ``description`` string.
    """

    def __init__(self, status_code: int, response_body: Optional[Dict[str, Any]] = None) -> None:
        """Initialise with the HTTP status code and optional body."""
        self.status_code = status_code
        self.response_body = response_body or {}
        self.description = self.response_body.get("description", "Unknown error")
        super().__init__(f"API error {status_code}: {self.description}")


class TransportError(Exception):
    """The request never produced an API response (network, timeout, DNS…)."""

    def __init__(self, method: str, cause: BaseException) -> None:
        self.method = method
        self.cause = cause
        super().__init__(f"Transport error calling {method}: {cause}")
