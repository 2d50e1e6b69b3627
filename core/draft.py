# ============================================================
# SQLA - SQL Assistant
# core/draft.py - Editable SQL Draft
# ============================================================


class QueryDraft:
    """
    The single current SQL text pending execution.

    `replace` is used when a generation result arrives, `edit` when the
    user types. Both overwrite unconditionally; no history is kept.
    """

    def __init__(self, text: str = ""):
        self._text = text

    @property
    def text(self) -> str:
        return self._text

    def replace(self, text: str):
        self._text = text or ""

    def edit(self, text: str):
        self._text = text or ""

    def is_blank(self) -> bool:
        return not self._text.strip()

    def __repr__(self):
        return f"<QueryDraft chars={len(self._text)}>"
