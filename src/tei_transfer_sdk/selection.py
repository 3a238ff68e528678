"""Destination selection from the org unit tree, search results or manual entry.

Each channel produces one selection value; the reconciler keeps whichever
arrived last and never merges parts of two selections.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from .models import Location


@dataclass(frozen=True)
class TreeSelection:
    selected_paths: tuple[str, ...]
    location_id: str


@dataclass(frozen=True)
class SearchSelection:
    location: Location


@dataclass(frozen=True)
class ManualSelection:
    location_id: str


Selection = Union[TreeSelection, SearchSelection, ManualSelection]


def tree_selection(selected: Sequence[str], location_id: str) -> TreeSelection:
    """Single selection: only the last non-empty path survives."""
    paths = [path for path in selected if path]
    return TreeSelection(selected_paths=tuple(paths[-1:]), location_id=location_id)


@dataclass(frozen=True)
class SelectionState:
    source: Selection | None = None

    @property
    def destination_id(self) -> str:
        if isinstance(self.source, SearchSelection):
            return self.source.location.id.strip()
        if isinstance(self.source, (TreeSelection, ManualSelection)):
            return self.source.location_id.strip()
        return ""

    @property
    def selected_paths(self) -> tuple[str, ...]:
        if isinstance(self.source, TreeSelection):
            return self.source.selected_paths
        return ()

    @property
    def channel(self) -> str | None:
        if isinstance(self.source, TreeSelection):
            return "tree"
        if isinstance(self.source, SearchSelection):
            return "search"
        if isinstance(self.source, ManualSelection):
            return "manual"
        return None


def reduce_selection(state: SelectionState, selection: Selection) -> SelectionState:
    if state.source == selection:
        return state
    return SelectionState(source=selection)
