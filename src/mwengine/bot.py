"""High-level bot built on :class:`~mwengine.client.orchestrator.ApiClient`.

:class:`Bot` adds the bulk entry points (pagination, chunked queries and
the two schedulers, with defaults taken from settings) and thin wrappers
for common wiki actions.  Each wrapper assembles parameters for a single
request and unwraps the interesting field of the response.

Usage::

    async with Bot(api_url="https://test.wikipedia.org/w/api.php") as bot:
        await bot.login_get_token(username="Bot@tool", password="...")
        await bot.save("Sandbox", "Hello", summary="test")
        pages = await bot.read(["A", "B", "C"])
"""

from __future__ import annotations

import inspect
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Sequence, Union

from mwengine.bulk.scheduler import BatchResult, Worker, batch_operation, series_batch_operation
from mwengine.client.orchestrator import ApiClient
from mwengine.client.pagination import continued_query, iter_continued_query, mass_query
from mwengine.client.request_options import RequestOptions
from mwengine.core.exceptions import ApiError, MwEngineError
from mwengine.title import NS_CATEGORY, NS_MAIN, Title

logger = logging.getLogger(__name__)

PageRef = Union[str, int, Title]
"""A page given as title text, page id, or parsed :class:`Title`."""

EditTransform = Callable[[dict[str, Any]], Union[str, Mapping[str, Any], Awaitable[Any]]]


def make_titles(pages: PageRef | Sequence[PageRef]) -> dict[str, list[Any]]:
    """Return ``{"pageids": [...]}`` for ids, ``{"titles": [...]}`` otherwise."""
    if isinstance(pages, (str, int, Title)):
        pages = [pages]
    pages = list(pages)
    if pages and isinstance(pages[0], int):
        return {"pageids": pages}
    return {"titles": [str(page) for page in pages]}


def make_title(page: PageRef) -> dict[str, Any]:
    """Return ``{"pageid": id}`` for an id, ``{"title": text}`` otherwise."""
    if isinstance(page, int):
        return {"pageid": page}
    return {"title": str(page)}


class Bot(ApiClient):
    """MediaWiki bot: an :class:`ApiClient` with bulk and page operations.

    Constructor arguments are those of :class:`ApiClient`.
    """

    # ------------------------------------------------------------------
    # Bulk processing
    # ------------------------------------------------------------------

    async def continued_query(
        self,
        query: Mapping[str, Any] | None = None,
        call_limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Follow continuations; see :func:`~mwengine.client.pagination.continued_query`."""
        return await continued_query(self, query, call_limit)

    def iter_continued_query(
        self,
        query: Mapping[str, Any] | None = None,
        call_limit: int | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Async iterator over the pages of a continued query."""
        return iter_continued_query(self, query, call_limit)

    async def mass_query(
        self,
        query: Mapping[str, Any],
        batch_field: str = "titles",
    ) -> list[dict[str, Any] | MwEngineError]:
        """Chunk *batch_field*; see :func:`~mwengine.client.pagination.mass_query`."""
        return await mass_query(self, query, batch_field)

    async def batch_operation(
        self,
        items: Sequence[Any],
        worker: Worker,
        concurrency: int | None = None,
    ) -> BatchResult:
        """Run *worker* over *items* in groups of *concurrency*.

        Defaults to ``settings.default_concurrency``; honours ``silent``.
        """
        if concurrency is None:
            concurrency = self.settings.default_concurrency
        return await batch_operation(items, worker, concurrency, silent=self.settings.silent)

    async def series_batch_operation(
        self,
        items: Sequence[Any],
        worker: Worker,
        delay: float | None = None,
    ) -> BatchResult:
        """Run *worker* over *items* one at a time with *delay* seconds between.

        Defaults to ``settings.default_throttle_delay``; honours ``silent``.
        """
        if delay is None:
            delay = self.settings.default_throttle_delay
        return await series_batch_operation(items, worker, delay, silent=self.settings.silent)

    # ------------------------------------------------------------------
    # Page operations
    # ------------------------------------------------------------------

    async def edit(self, title: PageRef, transform: EditTransform) -> dict[str, Any]:
        """Read-modify-write a page with edit-conflict detection.

        *transform* receives ``{"timestamp": ..., "content": ...}`` for the
        current revision and returns the new text, a mapping of edit
        parameters, or an awaitable of either.  The edit is sent with
        ``basetimestamp``/``starttimestamp`` so concurrent changes are
        reported as conflicts, and with ``nocreate``.

        Raises:
            ApiError: ``invalidtitle``, ``nocreate-missing`` or ``unknown``
                when the page cannot be loaded, or any edit error.
        """
        data = await self.request({
            "action": "query",
            "prop": "revisions",
            "rvprop": ["content", "timestamp"],
            "curtimestamp": True,
            **make_titles(title),
        })

        pages = (data.get("query") or {}).get("pages")
        if not pages:
            raise ApiError("unknown", "No page data in response", response=data)
        page = pages[0]
        if page.get("invalid"):
            raise ApiError("invalidtitle", f"Invalid title: {title}", response=data)
        if page.get("missing"):
            raise ApiError("nocreate-missing", f"Page does not exist: {title}", response=data)

        revision = page["revisions"][0]
        base_timestamp = revision["timestamp"]
        edit_params = transform({
            "timestamp": revision["timestamp"],
            "content": revision.get("content"),
        })
        if inspect.isawaitable(edit_params):
            edit_params = await edit_params
        if not isinstance(edit_params, Mapping):
            edit_params = {"text": str(edit_params)}

        data = await self.request({
            "action": "edit",
            "basetimestamp": base_timestamp,
            "starttimestamp": data.get("curtimestamp"),
            "nocreate": True,
            "token": self.csrf_token,
            **make_title(title),
            **edit_params,
        })
        return data["edit"]

    async def save(
        self,
        title: PageRef,
        content: str,
        summary: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Edit a page without loading it first.  No conflict detection."""
        data = await self.request({
            "action": "edit",
            "text": content,
            "summary": summary,
            "token": self.csrf_token,
            **make_title(title),
            **(options or {}),
        })
        return data["edit"]

    async def create(
        self,
        title: str,
        content: str,
        summary: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a page; fails with ``articleexists`` if it already exists."""
        data = await self.request({
            "action": "edit",
            "title": str(title),
            "text": content,
            "summary": summary,
            "createonly": True,
            "token": self.csrf_token,
            **(options or {}),
        })
        return data["edit"]

    async def new_section(
        self,
        title: PageRef,
        header: str,
        message: str,
        additional_params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Append a new section to a page (typically a talk page)."""
        data = await self.request({
            "action": "edit",
            "section": "new",
            "summary": header,
            "text": message,
            "token": self.csrf_token,
            **make_title(title),
            **(additional_params or {}),
        })
        return data["edit"]

    async def read(
        self,
        titles: PageRef | Sequence[PageRef],
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | list[Any]:
        """Read the current content of one or many pages.

        Any number of titles (or page ids) is accepted; they are chunked
        with :meth:`mass_query`.  A failed chunk keeps its error object in
        the returned list.

        Returns:
            The page object when exactly one page results, else a list.
        """
        targets = make_titles(titles)
        batch_field = next(iter(targets))
        responses = await self.mass_query(
            {
                "action": "query",
                "prop": "revisions",
                "rvprop": "content",
                "redirects": "1",
                **targets,
                **(options or {}),
            },
            batch_field,
        )

        pages: list[Any] = []
        for response in responses:
            if isinstance(response, MwEngineError):
                pages.append(response)
            else:
                pages.extend((response.get("query") or {}).get("pages") or [])
        return pages[0] if len(pages) == 1 else pages

    async def delete(
        self,
        title: PageRef,
        summary: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        data = await self.request({
            "action": "delete",
            "reason": summary,
            "token": self.csrf_token,
            **make_title(title),
            **(options or {}),
        })
        return data["delete"]

    async def undelete(
        self,
        title: str,
        summary: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Restore all deleted revisions of a page."""
        data = await self.request({
            "action": "undelete",
            "title": str(title),
            "reason": summary,
            "token": self.csrf_token,
            **(options or {}),
        })
        return data["undelete"]

    async def move(
        self,
        from_title: str,
        to_title: str,
        summary: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Move a page together with its talk page."""
        data = await self.request({
            "action": "move",
            "from": str(from_title),
            "to": str(to_title),
            "reason": summary,
            "movetalk": True,
            "token": self.csrf_token,
            **(options or {}),
        })
        return data["move"]

    async def parse_wikitext(
        self,
        content: str,
        additional_params: Mapping[str, Any] | None = None,
    ) -> str:
        """Return the HTML rendering of *content*."""
        data = await self.request({
            "action": "parse",
            "text": str(content),
            "contentmodel": "wikitext",
            **(additional_params or {}),
        })
        return data["parse"]["text"]

    async def parse_title(
        self,
        title: str,
        additional_params: Mapping[str, Any] | None = None,
    ) -> str:
        """Return the HTML rendering of the page *title*."""
        data = await self.request({
            "action": "parse",
            "page": str(title),
            "contentmodel": "wikitext",
            **(additional_params or {}),
        })
        return data["parse"]["text"]

    async def rollback(
        self,
        page: PageRef,
        user: str,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Revert the last consecutive edits of *user* on *page*."""
        token_data = await self.request({
            "action": "query",
            "meta": "tokens",
            "type": "rollback",
        })
        data = await self.request({
            "action": "rollback",
            "user": user,
            "token": token_data["query"]["tokens"]["rollbacktoken"],
            **make_title(page),
            **(params or {}),
        })
        return data["rollback"]

    async def purge(
        self,
        titles: PageRef | Sequence[PageRef],
        options: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Purge the cache of one or more pages."""
        data = await self.request({
            "action": "purge",
            **make_titles(titles),
            **(options or {}),
        })
        return data["purge"]

    async def upload(
        self,
        title: str | None,
        path: str | Path,
        comment: str | None = None,
        params: Mapping[str, Any] | None = None,
        request_options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Upload a local file as a ``multipart/form-data`` request.

        Args:
            title: Target file name; defaults to the local file name.
            path: Local file to upload.
            comment: Upload comment.
            params: Extra upload parameters.
            request_options: Per-call request option overrides.
        """
        path = Path(path)
        filename = title or path.name
        overrides = {"files": {"file": (filename, path.read_bytes())}}
        overrides.update(request_options or {})
        return await self.request(
            {
                "action": "upload",
                "filename": filename,
                "comment": comment or "",
                "token": self.csrf_token,
                **(params or {}),
            },
            overrides,
        )

    async def upload_overwrite(
        self,
        title: str | None,
        path: str | Path,
        comment: str | None = None,
        params: Mapping[str, Any] | None = None,
        request_options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Upload a file, replacing an existing one (``ignorewarnings``)."""
        return await self.upload(
            title,
            path,
            comment,
            {"ignorewarnings": True, **(params or {})},
            request_options,
        )

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    async def get_pages_by_prefix(
        self,
        prefix: str,
        other_params: Mapping[str, Any] | None = None,
    ) -> list[str]:
        """Return titles of pages starting with *prefix* (namespace-aware).

        Raises:
            ValueError: *prefix* is not a valid title.
        """
        title = self.session.namespaces.new_from_text(prefix)
        if title is None:
            raise ValueError(f"invalid prefix for get_pages_by_prefix: {prefix!r}")
        data = await self.request({
            "action": "query",
            "list": "allpages",
            "apprefix": title.title,
            "apnamespace": title.namespace,
            "aplimit": "max",
            **(other_params or {}),
        })
        return [page["title"] for page in data["query"]["allpages"]]

    async def get_pages_in_category(
        self,
        category: str,
        other_params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """List members of *category*, given with or without its prefix.

        Raises:
            ValueError: *category* is not a valid title.
        """
        title = self.session.namespaces.new_from_text(category)
        if title is None:
            raise ValueError(f"invalid category name: {category!r}")
        if title.namespace == NS_MAIN:
            title = title.in_namespace(NS_CATEGORY)
        return await self.request({
            "action": "query",
            "list": "categorymembers",
            "cmtitle": title.to_text(),
            "cmlimit": "max",
            **(other_params or {}),
        })

    # ------------------------------------------------------------------
    # External query endpoints
    # ------------------------------------------------------------------

    async def ask_query(
        self,
        query: str,
        api_url: str | None = None,
        request_options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Run a Semantic MediaWiki ``action=ask`` query (GET, no recovery)."""
        options = self._get_options(
            api_url,
            {"action": "ask", "format": "json", "query": query},
        ).with_overrides(request_options)
        return await self.raw_request(options)

    async def sparql_query(
        self,
        query: str,
        endpoint_url: str | None = None,
        request_options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Run a SPARQL query against *endpoint_url* (e.g. Wikidata Query Service)."""
        options = self._get_options(
            endpoint_url,
            {"format": "json", "query": query},
        ).with_overrides(request_options)
        return await self.raw_request(options)

    def _get_options(self, url: str | None, query: dict[str, Any]) -> RequestOptions:
        return RequestOptions(
            url=url or self.settings.api_url,
            method="GET",
            headers={"User-Agent": self.settings.user_agent},
            query=query,
            timeout=self.settings.request_timeout,
        )
