from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional, Set

from .normalize import normalize

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollisionWarning:
    """Two records in one category normalize to the same key.

    Not an error at write time; surfaced through audit and backfill reports.
    """

    category: str
    key: str
    kept_id: int
    shadowed_id: int

    def to_dict(self) -> dict:
        return asdict(self)

    def __str__(self) -> str:
        return (
            f"{self.category}: key {self.key!r} maps to metadata {self.kept_id}, "
            f"shadowing metadata {self.shadowed_id}"
        )


class MatchIndex:
    """Per-category map of normalized value/alias keys to metadata ids.

    Holds every record it was built from, active or not, so text already
    linked to a since-deactivated record still resolves. `active_ids` lets
    callers restrict new links when they need to.
    """

    def __init__(self) -> None:
        self._keys: Dict[str, Dict[str, int]] = {}
        self.active_ids: Set[int] = set()
        self.collisions: List[CollisionWarning] = []

    @classmethod
    def build(cls, records: Iterable) -> "MatchIndex":
        """Register records in iteration order; on a key collision the later one wins."""
        index = cls()
        for rec in records:
            index.register(rec.category, rec.id, rec.value, rec.aliases, is_active=bool(rec.is_active))
        if index.collisions:
            _log.warning("Match index built with %d key collision(s)", len(index.collisions))
        return index

    def register(self, category: str, metadata_id: int, value: str, aliases=None, is_active: bool = True) -> None:
        keys = self._keys.setdefault(category, {})
        if is_active:
            self.active_ids.add(metadata_id)
        candidates = [value]
        if isinstance(aliases, (list, tuple)):
            candidates.extend(a for a in aliases if isinstance(a, str))
        for raw in candidates:
            key = normalize(raw)
            if not key:
                continue
            previous = keys.get(key)
            if previous is not None and previous != metadata_id:
                warning = CollisionWarning(category=category, key=key, kept_id=metadata_id, shadowed_id=previous)
                self.collisions.append(warning)
                _log.warning("Metadata key collision: %s", warning)
            keys[key] = metadata_id

    def lookup(self, category: str, raw_text: Optional[str]) -> Optional[int]:
        key = normalize(raw_text)
        if not key:
            return None
        return self._keys.get(category, {}).get(key)

    def categories(self) -> List[str]:
        return sorted(self._keys)

    def __len__(self) -> int:
        return sum(len(keys) for keys in self._keys.values())


def build_index(records: Iterable) -> MatchIndex:
    return MatchIndex.build(records)
