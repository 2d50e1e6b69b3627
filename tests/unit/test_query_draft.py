"""Unit tests for the editable SQL draft."""

from core.draft import QueryDraft


class TestQueryDraft:

    def test_starts_empty(self) -> None:
        draft = QueryDraft()
        assert draft.text == ""
        assert draft.is_blank()

    def test_replace_overwrites(self) -> None:
        draft = QueryDraft("SELECT 1")
        draft.replace("SELECT 2")
        assert draft.text == "SELECT 2"

    def test_edit_overwrites(self) -> None:
        draft = QueryDraft("SELECT 1")
        draft.edit("SELECT 1 -- tweaked")
        assert draft.text == "SELECT 1 -- tweaked"

    def test_whitespace_only_is_blank(self) -> None:
        draft = QueryDraft()
        draft.edit("  \n\t ")
        assert draft.is_blank()

    def test_none_becomes_empty(self) -> None:
        draft = QueryDraft("SELECT 1")
        draft.replace(None)
        assert draft.text == ""
