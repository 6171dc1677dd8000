"""Pagination and oversized-input helpers built on :class:`ApiClient`.

- :func:`continued_query` follows ``continue`` descriptors page by page.
- :func:`mass_query` splits an oversized multi-value field (``titles``,
  ``pageids`` ...) into chunks the API accepts, one call per chunk.

Both are strictly sequential: page *n+1* needs page *n*'s continuation,
and chunk *i+1* is sent only after chunk *i* has settled.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Mapping, Sequence

from mwengine.core.exceptions import ApiConfigurationError, MwEngineError

if TYPE_CHECKING:
    from mwengine.client.orchestrator import ApiClient

logger = logging.getLogger(__name__)

TOO_MANY_VALUES: str = "toomanyvalues"

_HIGH_LIMIT_HINT: str = (
    "Your account doesn't have apihighlimit right. "
    "Set the option has_api_high_limit as False"
)


async def iter_continued_query(
    client: ApiClient,
    query: Mapping[str, Any] | None = None,
    call_limit: int | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Yield each page of a continued query as soon as it arrives.

    Args:
        client: Client used for every call.
        query: API parameters of the first call.
        call_limit: Maximum number of calls.  Defaults to
            ``settings.continuation_call_limit``.

    Raises:
        MwEngineError: Any failed call aborts the iteration.
    """
    limit = call_limit if call_limit is not None else client.settings.continuation_call_limit
    if limit < 1:
        raise ValueError("call_limit must be at least 1")
    params = dict(query or {})

    for count in range(1, limit + 1):
        response = await client.request(params)
        if not client.settings.silent:
            logger.info("continued_query: got part %d of continuous API query", count)
        yield response

        continuation = response.get("continue")
        if not continuation:
            return
        # Continuation fields override same-named query fields.
        params = {**params, **continuation}


async def continued_query(
    client: ApiClient,
    query: Mapping[str, Any] | None = None,
    call_limit: int | None = None,
) -> list[dict[str, Any]]:
    """Run a query and follow its continuations.

    Returns:
        Responses in call order; at most *call_limit* of them.
    """
    return [page async for page in iter_continued_query(client, query, call_limit)]


def chunk_values(values: Sequence[Any], size: int) -> list[list[Any]]:
    """Partition *values* into contiguous chunks of at most *size* items."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(values[start:start + size]) for start in range(0, len(values), size)]


async def mass_query(
    client: ApiClient,
    query: Mapping[str, Any],
    batch_field: str = "titles",
) -> list[dict[str, Any] | MwEngineError]:
    """Send one request per chunk of the multi-value field *batch_field*.

    The chunk size is ``settings.batch_size`` (500 for high-limit accounts,
    50 otherwise).

    Returns:
        One slot per chunk, in input order.  A slot holds the decoded
        response, or the error that chunk raised.

    Raises:
        ApiConfigurationError: The API answered ``toomanyvalues``; the
            high-limit setting does not match the account's rights.
    """
    values = query.get(batch_field) or []
    if isinstance(values, str):
        values = values.split("|")

    chunks = chunk_values(values, client.settings.batch_size)
    outcomes: list[dict[str, Any] | MwEngineError] = []

    for index, chunk in enumerate(chunks):
        try:
            response = await client.request({**query, batch_field: chunk})
        except MwEngineError as exc:
            if exc.code == TOO_MANY_VALUES:
                raise ApiConfigurationError(
                    TOO_MANY_VALUES,
                    _HIGH_LIMIT_HINT,
                    response=getattr(exc, "response", None),
                ) from exc
            logger.warning(
                "mass_query: chunk %d/%d failed: %s", index + 1, len(chunks), exc
            )
            outcomes.append(exc)
        else:
            outcomes.append(response)

    return outcomes
