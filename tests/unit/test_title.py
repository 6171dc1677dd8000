"""Unit tests for namespace resolution and title parsing."""

from __future__ import annotations

import pytest

from mwengine.title import NS_CATEGORY, NS_MAIN, NamespaceTable

_SITEINFO_RESPONSE = {
    "batchcomplete": True,
    "query": {
        "general": {"legaltitlechars": " %!\"$&'()*,\\-.\\/0-9:;=?@A-Z\\\\^_`a-z~\\x80-\\xFF+"},
        "namespaces": {
            "0": {"id": 0, "name": "", "case": "first-letter"},
            "2": {"id": 2, "name": "Benutzer", "canonical": "User", "case": "first-letter"},
            "14": {"id": 14, "name": "Kategorie", "canonical": "Category", "case": "first-letter"},
            "100": {"id": 100, "name": "Portal", "canonical": "Portal", "case": "case-sensitive"},
        },
        "namespacealiases": [
            {"id": 2, "alias": "Benutzerin"},
            {"id": 14, "alias": "Kat"},
        ],
    },
}


@pytest.fixture
def table() -> NamespaceTable:
    namespaces = NamespaceTable()
    namespaces.process_namespace_data(_SITEINFO_RESPONSE)
    return namespaces


class TestProcessNamespaceData:
    def test_local_canonical_and_alias_names(self, table: NamespaceTable) -> None:
        assert table.namespace_id("Kategorie") == NS_CATEGORY
        assert table.namespace_id("category") == NS_CATEGORY
        assert table.namespace_id("Kat") == NS_CATEGORY
        assert table.namespace_id("Benutzerin") == 2
        assert table.namespace_name(2) == "Benutzer"

    def test_formatversion_1_entries(self) -> None:
        table = NamespaceTable()
        table.process_namespace_data({
            "query": {
                "namespaces": {"4": {"id": 4, "*": "Wikipedia", "canonical": "Project"}},
                "namespacealiases": [{"id": 4, "*": "WP"}],
            }
        })

        assert table.namespace_id("Wikipedia") == 4
        assert table.namespace_id("WP") == 4

    def test_response_without_siteinfo_ignored(self) -> None:
        table = NamespaceTable()
        table.process_namespace_data({"batchcomplete": True})

        assert table.namespace_id("Category") == NS_CATEGORY

    def test_core_namespaces_known_before_siteinfo(self) -> None:
        table = NamespaceTable()

        assert table.namespace_id("User talk") == 3
        assert table.namespace_id("user_talk") == 3


class TestNewFromText:
    def test_plain_title(self, table: NamespaceTable) -> None:
        title = table.new_from_text("main page")

        assert title is not None
        assert title.namespace == NS_MAIN
        assert title.title == "Main page"
        assert title.to_text() == "Main page"

    def test_namespace_prefix_split(self, table: NamespaceTable) -> None:
        title = table.new_from_text("Kat:Living_people")

        assert title is not None
        assert title.namespace == NS_CATEGORY
        assert title.title == "Living people"
        assert title.to_text() == "Kategorie:Living people"

    def test_unknown_prefix_stays_in_title(self, table: NamespaceTable) -> None:
        title = table.new_from_text("Star Wars: A New Hope")

        assert title is not None
        assert title.namespace == NS_MAIN
        assert title.title == "Star Wars: A New Hope"

    def test_leading_colon_forces_main(self, table: NamespaceTable) -> None:
        title = table.new_from_text(":Category")

        assert title is not None
        assert title.namespace == NS_MAIN
        assert title.title == "Category"

    def test_case_sensitive_namespace_keeps_case(self, table: NamespaceTable) -> None:
        title = table.new_from_text("Portal:iPhone")

        assert title is not None
        assert title.title == "iPhone"

    @pytest.mark.parametrize("text", ["", "   ", "Category:", "A|B", "Foo[bar]", "x~~~"])
    def test_invalid_titles(self, table: NamespaceTable, text: str) -> None:
        assert table.new_from_text(text) is None

    def test_in_namespace(self, table: NamespaceTable) -> None:
        title = table.new_from_text("Physics")
        moved = title.in_namespace(NS_CATEGORY)

        assert moved.namespace == NS_CATEGORY
        assert str(moved) == "Kategorie:Physics"
