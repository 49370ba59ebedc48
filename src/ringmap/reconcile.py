"""Keyed enter/update/exit reconciliation of rendered artists."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, Hashable, Iterable, TypeVar

_LOGGER = logging.getLogger("ringmap.reconcile")

K = TypeVar("K", bound=Hashable)
D = TypeVar("D")
A = TypeVar("A")


@dataclass(slots=True)
class JoinSummary:
    entered: list[Hashable] = field(default_factory=list)
    updated: list[Hashable] = field(default_factory=list)
    exited: list[Hashable] = field(default_factory=list)
    duplicates: list[Hashable] = field(default_factory=list)


class KeyedJoin(Generic[K, D, A]):
    """Artists keyed by data identity, diffed against each incoming batch.

    `enter` builds an artist for a new key, `update` refreshes an existing
    one in place, and `exit` tears down artists whose key vanished.
    """

    def __init__(
        self,
        *,
        key: Callable[[D], K],
        enter: Callable[[K, D], A],
        update: Callable[[A, D], None],
        exit: Callable[[A], None],
    ) -> None:
        self._key = key
        self._enter = enter
        self._update = update
        self._exit = exit
        self.artists: dict[K, A] = {}

    def __len__(self) -> int:
        return len(self.artists)

    def __contains__(self, key: object) -> bool:
        return key in self.artists

    def get(self, key: K) -> A | None:
        return self.artists.get(key)

    def apply(self, data: Iterable[D]) -> JoinSummary:
        summary = JoinSummary()
        seen: set[K] = set()
        for item in data:
            item_key = self._key(item)
            if item_key in seen:
                summary.duplicates.append(item_key)
                continue
            seen.add(item_key)
            artist = self.artists.get(item_key)
            if artist is None:
                artist = self._enter(item_key, item)
                self.artists[item_key] = artist
                summary.entered.append(item_key)
            else:
                summary.updated.append(item_key)
            self._update(artist, item)

        for stale_key in [k for k in self.artists if k not in seen]:
            self._exit(self.artists.pop(stale_key))
            summary.exited.append(stale_key)

        if summary.duplicates:
            _LOGGER.warning(
                "Skipped %d duplicate keys during reconciliation: %s",
                len(summary.duplicates),
                ", ".join(str(k) for k in summary.duplicates[:12]),
            )
        return summary

    def clear(self) -> None:
        for artist in self.artists.values():
            self._exit(artist)
        self.artists.clear()
