# -*- coding: utf-8 -*-
"""
pctbagging.frontier
===================

Ordered worklist of the positions still to be expanded while the
consolidated tree is grown.

The ordering policy is a :class:`PriorityCriteria`; for the scored policies a
:class:`SearchAlgorithm` decides whether children compete with every pending
entry (best-first) or only among themselves (hill climbing).
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum


class PriorityCriteria(str, Enum):
    """Order in which pending nodes are expanded."""

    ORIGINAL = "original"
    LEVEL_BY_LEVEL = "level_by_level"
    PREORDER = "preorder"
    SIZE = "size"
    GAIN_RATIO_WHOLE_DATA = "gain_ratio_whole_data"
    GAIN_RATIO_SET_OF_SAMPLES = "gain_ratio_set_of_samples"
    GAIN_RATIO_WHOLE_DATA_SIZE = "gain_ratio_whole_data_size"
    GAIN_RATIO_SET_OF_SAMPLES_SIZE = "gain_ratio_set_of_samples_size"

    @property
    def is_scored(self) -> bool:
        """Children carry a key and are inserted in descending key order."""
        return self not in (PriorityCriteria.ORIGINAL,
                            PriorityCriteria.LEVEL_BY_LEVEL,
                            PriorityCriteria.PREORDER)

    @property
    def uses_gain_ratio(self) -> bool:
        return self.is_scored and self is not PriorityCriteria.SIZE

    @property
    def uses_samples(self) -> bool:
        return self in (PriorityCriteria.GAIN_RATIO_SET_OF_SAMPLES,
                        PriorityCriteria.GAIN_RATIO_SET_OF_SAMPLES_SIZE)

    @property
    def scales_by_size(self) -> bool:
        return self in (PriorityCriteria.GAIN_RATIO_WHOLE_DATA_SIZE,
                        PriorityCriteria.GAIN_RATIO_SET_OF_SAMPLES_SIZE)

    @property
    def counts_levels(self) -> bool:
        return self is PriorityCriteria.LEVEL_BY_LEVEL


class SearchAlgorithm(str, Enum):
    BEST_FIRST = "best_first"
    HILL_CLIMBING = "hill_climbing"


@dataclass
class FrontierEntry:
    """A pending position: arena id, depth and ordering key."""

    node_id: int
    depth: int
    key: float | None = None


class ExpansionFrontier:
    """Worklist of :class:`FrontierEntry` ordered by a priority policy.

    Entries are always consumed from the front.  ``extend`` receives the
    children of the node just expanded, in branch order, and places them
    according to the policy:

    * ``ORIGINAL``/``PREORDER``: in front of everything pending (depth-first);
    * ``LEVEL_BY_LEVEL``: at the back (breadth-first);
    * scored policies with ``BEST_FIRST``: each child is inserted in the whole
      list by descending key;
    * scored policies with ``HILL_CLIMBING``: children are sorted by
      descending key among themselves and go in front of everything pending.

    Insertion is stable: an entry goes before the first entry whose key is
    strictly smaller, so equal keys keep arrival order.
    """

    def __init__(self, criteria: PriorityCriteria,
                 search: SearchAlgorithm = SearchAlgorithm.BEST_FIRST):
        self.criteria = PriorityCriteria(criteria)
        self.search = SearchAlgorithm(search)
        self._entries: deque = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def push(self, entry: FrontierEntry):
        self._entries.append(entry)

    def pop(self) -> FrontierEntry:
        return self._entries.popleft()

    def extend(self, children: list):
        if not self.criteria.is_scored:
            if self.criteria.counts_levels:
                self._entries.extend(children)
            else:
                self._entries.extendleft(reversed(list(children)))
            return
        if self.search is SearchAlgorithm.HILL_CLIMBING:
            ordered: list[FrontierEntry] = []
            for child in children:
                _insert_ordered(ordered, child)
            self._entries.extendleft(reversed(ordered))
        else:
            for child in children:
                _insert_ordered(self._entries, child)


def _insert_ordered(entries, entry: FrontierEntry):
    for i, other in enumerate(entries):
        if other.key < entry.key:
            entries.insert(i, entry)
            return
    entries.append(entry)
