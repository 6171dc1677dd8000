"""Exception hierarchy for mwengine.

All custom exceptions subclass ``MwEngineError``, enabling consistent error
handling and structured logging across the library.  Every exception carries
``code`` and ``info`` attributes so callers can branch on them without
parsing messages.

Hierarchy::

    MwEngineError
    ├── TransportError            no response obtained
    ├── InvalidResponseError      body was not a JSON object
    ├── ApiError                  server returned an ``error`` descriptor
    │   └── ApiConfigurationError account limit smaller than the batch cap
    ├── LoginError
    ├── TokenError
    └── WorkerContractError       (also a TypeError)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mwengine.client.request_options import RequestOptions


class MwEngineError(Exception):
    """Base class for all mwengine exceptions.

    Args:
        message: Human-readable description.
        code: Short machine-readable code.
        info: Longer human-readable detail; defaults to *message*.
    """

    code: str = "mwengine"

    def __init__(self, message: str, code: str | None = None, info: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.info = info if info is not None else message


class TransportError(MwEngineError):
    """Raised when no response could be obtained from the remote service.

    Covers a missing destination URL as well as network, TLS and timeout
    failures reported by httpx.  The engine never retries these.
    """

    code = "transport"


class InvalidResponseError(MwEngineError):
    """Raised when the decoded body is not a JSON object.

    Args:
        response: The raw body (text, or the decoded non-object value).
    """

    code = "invalidjson"

    def __init__(self, response: Any) -> None:
        super().__init__("invalidjson: No valid JSON response", info="No valid JSON response")
        self.response = response


class ApiError(MwEngineError):
    """Raised when the API answers with an ``error`` descriptor.

    Args:
        code: The server's error code (e.g. ``"permissiondenied"``).
        info: The server's human-readable explanation.
        response: The full decoded response.
        request: The outgoing request that produced it.
    """

    code = "unknown"

    def __init__(
        self,
        code: str,
        info: str,
        response: dict[str, Any] | None = None,
        request: RequestOptions | None = None,
    ) -> None:
        super().__init__(f"{code}: {info}", code=code, info=info)
        self.response = response
        self.request = request


class ApiConfigurationError(ApiError):
    """Raised by ``mass_query`` when the account rejects the batch size.

    The server's ``toomanyvalues`` code means the configured high-limit flag
    does not match the account's rights; this is a caller misconfiguration,
    not a per-batch fault.
    """


class LoginError(MwEngineError):
    """Raised when logging in is impossible or rejected.

    Args:
        message: Description of the failure.
        response: The decoded response, when one was received.
    """

    code = "loginfailed"

    def __init__(self, message: str, response: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.response = response


class TokenError(MwEngineError):
    """Raised when a token query answers without the requested token."""

    code = "notoken"

    def __init__(self, message: str, response: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.response = response


class WorkerContractError(MwEngineError, TypeError):
    """Raised when a bulk-operation worker does not return an awaitable.

    This is a programming error in the caller and aborts the whole bulk
    operation instead of being counted as a failed item.
    """

    code = "badworker"
