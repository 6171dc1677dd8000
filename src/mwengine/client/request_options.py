"""Request options, option layering, and API parameter preprocessing.

Options are combined in three explicit layers, lowest precedence first:

1. :func:`default_request_options`: derived from :class:`EngineSettings`.
2. Instance options: set once per client (``set_request_options``,
   ``set_default_params``, ``set_user_agent``).
3. Per-call overrides: the ``overrides`` argument of ``request()``.

``headers``, ``query`` and ``form`` are merged one level deep; every other
field is replaced outright.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from mwengine.config.settings import EngineSettings

UNIT_SEPARATOR: str = "\x1f"
"""Prefix and joiner for multi-value parameters whose items contain ``|``."""

_DICT_FIELDS: frozenset[str] = frozenset({"headers", "query", "form"})


@dataclass
class RequestOptions:
    """Everything the transport needs to send one HTTP request.

    Attributes:
        url: Destination endpoint.  ``None`` makes the transport fail.
        method: HTTP method.
        headers: Request headers.
        query: URL query-string parameters.
        form: Form-encoded body parameters (the API parameters).
        files: Multipart file parts; when set the body is sent as
            ``multipart/form-data``.
        timeout: Per-call timeout in seconds.
    """

    url: str | None = None
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    form: dict[str, Any] = field(default_factory=dict)
    files: dict[str, Any] | None = None
    timeout: float | None = None

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> RequestOptions:
        """Return a copy with *overrides* applied on top of these options.

        Raises:
            ValueError: If *overrides* names a field that does not exist.
        """
        result = self.copy()
        if not overrides:
            return result
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown request option(s): {sorted(unknown)}")
        for name, value in overrides.items():
            if name in _DICT_FIELDS:
                merged = dict(getattr(result, name))
                merged.update(value or {})
                setattr(result, name, merged)
            else:
                setattr(result, name, value)
        return result

    def copy(self) -> RequestOptions:
        """Return a copy whose dict fields can be mutated independently."""
        return replace(
            self,
            headers=dict(self.headers),
            query=dict(self.query),
            form=dict(self.form),
            files=dict(self.files) if self.files is not None else None,
        )


def default_request_options(settings: EngineSettings) -> RequestOptions:
    """Build the lowest-precedence option layer from *settings*."""
    return RequestOptions(
        url=settings.api_url,
        method="POST",
        headers={"User-Agent": settings.user_agent},
        form={
            "format": "json",
            "formatversion": "2",
            "maxlag": settings.maxlag,
        },
        timeout=settings.request_timeout,
    )


def preprocess_parameters(params: Mapping[str, Any]) -> dict[str, Any]:
    """Convert API parameters to the values the Action API expects on the wire.

    - Sequences are joined with ``|``.  If any item already contains ``|``
      the value is instead prefixed with and joined by U+001F, the API's
      own escape for pipe-containing values.
    - ``False`` and ``None`` values are dropped; the API treats the mere
      presence of a parameter as true.
    - Everything else passes through unchanged.

    Example::

        >>> preprocess_parameters({"titles": ["A", "B"], "redirects": False})
        {'titles': 'A|B'}
    """
    result: dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, (list, tuple)):
            items = [str(item) for item in value]
            if any("|" in item for item in items):
                result[key] = UNIT_SEPARATOR + UNIT_SEPARATOR.join(items)
            else:
                result[key] = "|".join(items)
        elif value is False or value is None:
            continue
        else:
            result[key] = value
    return result
