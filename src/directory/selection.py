"""One authoritative selection shared by the list view and the map view.

A click in the list selects by index. A click on a map marker selects by
record key, and the key is resolved to an index in whichever displayed
sequence contains it, so the selection never points outside the list that
is on screen.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Protocol, Sequence, Tuple

import pandas as pd

logger = logging.getLogger(__name__)


class SelectionState(Enum):
    UNSELECTED = "unselected"
    SELECTED = "selected"
    SCROLLING = "scrolling"


class ListScroller(Protocol):
    """The list view's programmatic scroll capability."""

    def scroll_to_index(self, index: int, align: str = "center", behavior: str = "smooth") -> None:
        ...


Candidate = Tuple[str, pd.DataFrame]


class SelectionSynchronizer:
    """Selection state machine: UNSELECTED, SELECTED, and transient SCROLLING."""

    def __init__(self, scroller: Optional[ListScroller] = None):
        self.scroller = scroller
        self.state = SelectionState.UNSELECTED
        self.index: Optional[int] = None
        self.source: Optional[str] = None
        self.record_key: Any = None

    @property
    def is_selected(self) -> bool:
        return self.state is not SelectionState.UNSELECTED

    def clear(self) -> None:
        if self.is_selected:
            logger.debug(f"Selection cleared (was index {self.index} in {self.source})")
        self.state = SelectionState.UNSELECTED
        self.index = None
        self.source = None
        self.record_key = None

    def select_from_list(self, index: int, sequence: pd.DataFrame, source: str) -> bool:
        """Select the ``index``-th row of the list the user clicked.

        Returns False, leaving the state untouched, when the index is out of range.
        """
        if not 0 <= index < len(sequence):
            logger.warning(f"Ignoring list selection {index}: {source} has {len(sequence)} rows")
            return False
        self._set_selected(index, source, sequence.index[index])
        return True

    def select_from_map(self, record_key: Any, candidates: Sequence[Candidate]) -> bool:
        """Select the record behind a clicked marker.

        ``candidates`` are tried in order; the first sequence containing the
        key supplies the index. The list is then scrolled to it.
        """
        for source, sequence in candidates:
            position = _position_of(sequence, record_key)
            if position is None:
                continue
            self._set_selected(position, source, record_key)
            self._scroll_to(position)
            return True

        logger.debug(f"Marker {record_key!r} is not in any displayed sequence")
        self.clear()
        return False

    def reconcile(self, sequence: pd.DataFrame, source: str) -> bool:
        """Re-point the selection after the displayed sequence changed shape.

        Used after a viewport change: the same record may sit at a different
        index in the new visible subset, or have left it entirely.
        """
        if not self.is_selected:
            return False
        position = _position_of(sequence, self.record_key)
        if position is None:
            self.clear()
            return False
        self.index = position
        self.source = source
        return True

    def _set_selected(self, index: int, source: str, record_key: Any) -> None:
        self.state = SelectionState.SELECTED
        self.index = index
        self.source = source
        self.record_key = record_key

    def _scroll_to(self, index: int) -> None:
        if self.scroller is None:
            return
        self.state = SelectionState.SCROLLING
        try:
            self.scroller.scroll_to_index(index, align="center", behavior="smooth")
        except Exception as e:
            logger.warning(f"List scroll to index {index} failed: {e}")
        finally:
            if self.state is SelectionState.SCROLLING:
                self.state = SelectionState.SELECTED


def _position_of(sequence: pd.DataFrame, record_key: Any) -> Optional[int]:
    if sequence is None or sequence.empty:
        return None
    matches = (sequence.index == record_key).nonzero()[0]
    if len(matches) == 0:
        return None
    return int(matches[0])
