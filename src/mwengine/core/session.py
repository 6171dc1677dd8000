"""Mutable state owned by a single engine instance."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from mwengine.title import NamespaceTable

INVALID_TOKEN: str = "%notoken%"
"""Placeholder CSRF token.

A privileged request sent before a token has been fetched is answered with
``badtoken`` and goes through the token-refresh path.
"""


@dataclass
class CallStatistics:
    """Counters describing the HTTP calls made by one engine.

    ``total`` grows when a call is dispatched; ``resolved`` when the call
    reaches the settlement stage; exactly one of ``fulfilled`` / ``rejected``
    when it settles.  Once nothing is in flight,
    ``resolved == fulfilled + rejected``.
    """

    total: int = 0
    resolved: int = 0
    fulfilled: int = 0
    rejected: int = 0

    @property
    def in_flight(self) -> int:
        return self.resolved - self.fulfilled - self.rejected


@dataclass
class SessionState:
    """Authentication state and site metadata for one engine instance.

    Attributes:
        csrf_token: Current edit token; :data:`INVALID_TOKEN` until fetched.
        state: Key/value fields returned by the login and token queries
            (``logintoken``, ``lguserid``, ``lgusername``, ``csrftoken`` ...).
        logged_in: Whether ``action=login`` has succeeded.
        namespaces: Namespace table for title parsing.
        session_id: Identifier bound into log records.
    """

    csrf_token: str = INVALID_TOKEN
    state: dict[str, Any] = field(default_factory=dict)
    logged_in: bool = False
    namespaces: NamespaceTable = field(default_factory=NamespaceTable)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def merge(self, fields: dict[str, Any]) -> None:
        """Merge *fields* into :attr:`state`, later values winning."""
        self.state.update(fields)
