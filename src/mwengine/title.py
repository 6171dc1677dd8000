"""Page-title parsing and namespace resolution.

A :class:`NamespaceTable` belongs to one engine session.  It starts with
the namespaces every MediaWiki installation shares and is refreshed from a
``meta=siteinfo`` response by :meth:`NamespaceTable.process_namespace_data`
(the login flow and ``get_site_info`` do this automatically).

Only what the engine needs is implemented: splitting a namespace prefix,
normalising underscores and whitespace, first-letter capitalisation, and
rejecting characters MediaWiki never allows in titles.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

NS_MAIN: int = 0
NS_CATEGORY: int = 14

# Canonical namespaces present on every wiki, used until siteinfo arrives.
_CORE_NAMESPACES: dict[int, str] = {
    -2: "Media",
    -1: "Special",
    0: "",
    1: "Talk",
    2: "User",
    3: "User talk",
    4: "Project",
    5: "Project talk",
    6: "File",
    7: "File talk",
    8: "MediaWiki",
    9: "MediaWiki talk",
    10: "Template",
    11: "Template talk",
    12: "Help",
    13: "Help talk",
    14: "Category",
    15: "Category talk",
}

_ILLEGAL_TITLE_RE = re.compile(r"[#<>\[\]|{}\x00-\x1f\x7f]|~{3,}")
_WHITESPACE_RE = re.compile(r"[ _\s]+")


def _normalize_name(name: str) -> str:
    """Lower-case a namespace name or alias and unify spaces/underscores."""
    return _WHITESPACE_RE.sub("_", name.strip()).lower()


@dataclass(frozen=True)
class Title:
    """A parsed page title.

    Attributes:
        namespace: Numeric namespace id.
        title: Title text without the namespace prefix, using spaces.
    """

    namespace: int
    title: str
    table: NamespaceTable = field(compare=False, repr=False)

    def to_text(self) -> str:
        """Return the full title with its namespace prefix."""
        prefix = self.table.namespace_name(self.namespace)
        return f"{prefix}:{self.title}" if prefix else self.title

    def in_namespace(self, namespace: int) -> Title:
        """Return a copy of this title moved to *namespace*."""
        return Title(namespace=namespace, title=self.title, table=self.table)

    def __str__(self) -> str:
        return self.to_text()


class NamespaceTable:
    """Namespace name/id lookups for a single wiki."""

    def __init__(self) -> None:
        self.name_id_map: dict[str, int] = {}
        self.id_name_map: dict[int, str] = {}
        self.case_sensitive: set[int] = set()
        self.legal_title_chars: str | None = None
        for ns_id, name in _CORE_NAMESPACES.items():
            self.id_name_map[ns_id] = name
            self.name_id_map[_normalize_name(name)] = ns_id

    def process_namespace_data(self, response: dict[str, Any]) -> None:
        """Populate the table from a ``meta=siteinfo`` response.

        Reads ``general.legaltitlechars``, ``namespaces`` and
        ``namespacealiases`` from the ``query`` block.  Both response
        format versions are understood (name under ``name`` or ``*``).
        Responses without siteinfo data leave the table unchanged.
        """
        query = response.get("query") or {}
        namespaces = query.get("namespaces")
        if not namespaces:
            logger.debug("title: response carries no namespace data")
            return

        general = query.get("general") or {}
        if general.get("legaltitlechars"):
            self.legal_title_chars = general["legaltitlechars"]

        entries = namespaces.values() if isinstance(namespaces, dict) else namespaces
        for ns in entries:
            ns_id = int(ns["id"])
            name = ns.get("name", ns.get("*", ""))
            self.id_name_map[ns_id] = name
            self.name_id_map[_normalize_name(name)] = ns_id
            if ns.get("canonical"):
                self.name_id_map[_normalize_name(ns["canonical"])] = ns_id
            if ns.get("case") == "case-sensitive":
                self.case_sensitive.add(ns_id)
            else:
                self.case_sensitive.discard(ns_id)

        for alias in query.get("namespacealiases") or []:
            alias_name = alias.get("alias", alias.get("*", ""))
            if alias_name:
                self.name_id_map[_normalize_name(alias_name)] = int(alias["id"])

        logger.debug("title: loaded %d namespace names", len(self.name_id_map))

    def namespace_name(self, namespace: int) -> str:
        """Return the local display name of *namespace* (``""`` for main)."""
        return self.id_name_map.get(namespace, "")

    def namespace_id(self, name: str) -> int | None:
        """Return the id for a namespace name or alias, or ``None``."""
        return self.name_id_map.get(_normalize_name(name))

    def new_from_text(self, text: str, default_namespace: int = NS_MAIN) -> Title | None:
        """Parse *text* into a :class:`Title`.

        Returns ``None`` when the text is empty, has an empty title part, or
        contains characters that are never legal in page titles.
        """
        if not isinstance(text, str):
            return None
        cleaned = _WHITESPACE_RE.sub(" ", text).strip()
        namespace = default_namespace

        if cleaned.startswith(":"):
            # A leading colon forces the main namespace.
            cleaned = cleaned[1:].strip()
            namespace = NS_MAIN
        elif ":" in cleaned:
            prefix, rest = cleaned.split(":", 1)
            ns_id = self.namespace_id(prefix)
            if ns_id is not None:
                namespace = ns_id
                cleaned = rest.strip()

        if not cleaned or _ILLEGAL_TITLE_RE.search(cleaned):
            return None
        if namespace not in self.case_sensitive:
            cleaned = cleaned[0].upper() + cleaned[1:]
        return Title(namespace=namespace, title=cleaned, table=self)
