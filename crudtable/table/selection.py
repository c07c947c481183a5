"""
Row selection model.

Selection is a list of row indices into the dataset mirror, replaced
wholesale on every selection gesture. Indices are stored sorted and
de-duplicated, so "the first selected row" is always the lowest index.

The API is multi-row shaped, but Edit and the derived current record only
honor the first index.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Sequence, Union

from crudtable.table.records import Record, clone_record

logger = logging.getLogger("crudtable.table.selection")

# Row-selection gestures may also report these instead of an index list.
SELECT_ALL = "all"
SELECT_NONE = "none"

SelectionInput = Union[Iterable[int], str]


class SelectionModel:
    """
    Tracks selected indices and the record they resolve to.

    ``current_record`` is recomputed synchronously on every change: the row at
    the first selected index, or a fresh copy of the default template when
    nothing is selected.
    """

    def __init__(self, default_data: Mapping[str, Any]):
        self._default_data = clone_record(default_data)
        self._selected: List[int] = []
        self._current: Record = clone_record(self._default_data)

    @property
    def selected(self) -> List[int]:
        return list(self._selected)

    @property
    def current_record(self) -> Record:
        return self._current

    @property
    def has_selection(self) -> bool:
        return bool(self._selected)

    def is_selected(self, index: int) -> bool:
        return index in self._selected

    def handle_row_selection(self, indices: SelectionInput, mirror: Sequence[Record]) -> List[int]:
        """Replace the selection and re-derive the current record. Returns the stored indices."""
        if indices == SELECT_ALL:
            normalized = list(range(len(mirror)))
        elif indices == SELECT_NONE:
            normalized = []
        elif isinstance(indices, str):
            raise ValueError(f"Unknown selection '{indices}'")
        else:
            normalized = self._normalize(indices, len(mirror))
        self._selected = normalized
        self._rederive(mirror)
        return self.selected

    def reconcile(self, mirror: Sequence[Record], policy: str) -> None:
        """
        Re-align selection after the mirror was replaced.

        ``clear`` drops the selection. ``preserve`` keeps the indices as they
        are, so after a refresh they may point at different rows; indices past
        the end of the new mirror are dropped.
        """
        if policy == "clear":
            self._selected = []
        else:
            self._selected = [i for i in self._selected if i < len(mirror)]
        self._rederive(mirror)

    def clear(self) -> None:
        self._selected = []
        self._current = clone_record(self._default_data)

    def _rederive(self, mirror: Sequence[Record]) -> None:
        if self._selected:
            self._current = mirror[self._selected[0]]
        else:
            self._current = clone_record(self._default_data)

    @staticmethod
    def _normalize(indices: Iterable[int], size: int) -> List[int]:
        result = set()
        for index in indices:
            if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < size:
                logger.warning(f"Ignoring row index {index!r} (table has {size} rows)")
                continue
            result.add(index)
        return sorted(result)
