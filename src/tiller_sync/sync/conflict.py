"""Detect remote edits made since the last pull.

Rows are matched by identity where the tab has one (transaction id,
category name) and by position otherwise (AutoCat rules). Matched rows
are compared on content; their position is compared separately so that
rows inserted above them (Tiller adds new transactions at the top) do not
count as modifications, while a genuine re-sort still shows up.
"""

from __future__ import annotations

from typing import Any

from ..model import SheetRow, TabData, TillerData
from .models import CollectionDiff, ConflictReport


def detect(current: TillerData, baseline: TillerData | None) -> ConflictReport:
    """Compare the remote sheet now with the snapshot from the last pull.

    Args:
        current: Freshly fetched remote data.
        baseline: Last pull snapshot, or ``None`` if there has been none.

    Returns:
        A ``ConflictReport``; ``has_baseline`` is False when ``baseline``
        is None.
    """
    if baseline is None:
        return ConflictReport(has_baseline=False)
    return ConflictReport(
        has_baseline=True,
        collections={
            now.TAB.value: diff_tab(now, then)
            for now, then in zip(current.tabs(), baseline.tabs())
        },
    )


def diff_tab(current: TabData, baseline: TabData) -> CollectionDiff:
    """Count additions, modifications and deletions for one tab."""
    now = _index(current)
    then = _index(baseline)
    additions = sum(1 for key in now if key not in then)
    deletions = sum(1 for key in then if key not in now)
    modifications = sum(
        1
        for key, row in now.items()
        if key in then and _content(row) != _content(then[key])
    )
    still_now = [key for key in now if key in then]
    still_then = [key for key in then if key in now]
    return CollectionDiff(
        additions=additions,
        modifications=modifications,
        deletions=deletions,
        headers_changed=current.headers != baseline.headers,
        reordered=still_now != still_then,
    )


def _index(tab: TabData) -> dict[Any, SheetRow]:
    index = {}
    for position, row in enumerate(tab.rows):
        key = row.key()
        index[position if key is None else key] = row
    return index


def _content(row: SheetRow) -> dict[str, Any]:
    return row.model_dump(exclude={"original_order"})
