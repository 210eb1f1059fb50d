"""Registry handle over the curated `metadata` table.

The registry works inside the caller's session and transaction: it flushes so
ids exist but never commits. Pass it explicitly to the resolver and backfill;
tests build one per isolated session.
"""
from __future__ import annotations

import json
from typing import Any, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.models import AuditLog, ComboSceneMetadata, Metadata, Reel, Rod, Trip

from .errors import DuplicateMetadata, MetadataNotFound, RegistryConflict
from .match_index import MatchIndex
from .normalize import normalize_aliases

# Columns that may point at a metadata row; delete is refused while any match
REFERENCE_COLUMNS = (
    Rod.brand_metadata_id,
    Rod.power_metadata_id,
    Rod.length_unit_metadata_id,
    Reel.brand_metadata_id,
    Trip.weather_metadata_id,
    ComboSceneMetadata.metadata_id,
)

_EDITABLE_FIELDS = ("label", "sort_order", "is_active", "aliases", "extra")


def coerce_id(metadata_id: Any) -> Optional[int]:
    """Integer id from client input, or None when the value is not an integer id.

    Digit-only strings are accepted; fractional floats and other types are not.
    """
    if isinstance(metadata_id, bool):
        return None
    if isinstance(metadata_id, int):
        return metadata_id
    if isinstance(metadata_id, float):
        return int(metadata_id) if metadata_id.is_integer() else None
    if isinstance(metadata_id, str):
        s = metadata_id.strip()
        return int(s) if s.isascii() and s.isdigit() else None
    return None


def _audit_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class MetadataRegistry:
    def __init__(self, session: Session, actor: Optional[str] = None):
        self.session = session
        self.actor = actor
        # Bumped on every write made through this handle; invalidates the cached index
        self.generation = 0
        self._index: Optional[MatchIndex] = None
        self._index_generation = -1

    # ---- reads ----

    def list_by_category(self, category: str, active_only: bool = False) -> List[Metadata]:
        q = self.session.query(Metadata).filter(Metadata.category == category)
        if active_only:
            q = q.filter(Metadata.is_active.is_(True))
        return q.order_by(Metadata.sort_order.asc(), Metadata.label.asc()).all()

    def suggestions(self, category: str) -> List[Metadata]:
        """Records offered in pickers: active only, ordered (sort_order, label)."""
        return self.list_by_category(category, active_only=True)

    def list_all(self, category: Optional[str] = None) -> List[Metadata]:
        q = self.session.query(Metadata)
        if category:
            q = q.filter(Metadata.category == category)
        return q.order_by(Metadata.category.asc(), Metadata.sort_order.asc(), Metadata.label.asc()).all()

    def get(self, metadata_id: Any) -> Metadata:
        mid = coerce_id(metadata_id)
        rec = self.session.get(Metadata, mid) if mid is not None else None
        if rec is None:
            raise MetadataNotFound(metadata_id)
        return rec

    def find_by_id(self, metadata_id: Any, expected_category: str, active_only: bool = False) -> Metadata:
        """Fetch a record only if it belongs to `expected_category`.

        Ids from client input are checked against the category the caller is
        writing, so a reel brand id can never be attached as a rod brand.
        """
        mid = coerce_id(metadata_id)
        rec = self.session.get(Metadata, mid) if mid is not None else None
        if rec is None or rec.category != expected_category or (active_only and not rec.is_active):
            raise MetadataNotFound(metadata_id, expected_category)
        return rec

    def find_many(self, metadata_ids: Iterable[Any], category: str, active_only: bool = False) -> List[Metadata]:
        ids = {mid for mid in (coerce_id(m) for m in metadata_ids) if mid is not None}
        if not ids:
            return []
        q = self.session.query(Metadata).filter(Metadata.id.in_(ids), Metadata.category == category)
        if active_only:
            q = q.filter(Metadata.is_active.is_(True))
        return q.all()

    def reference_count(self, metadata_id: Any) -> int:
        mid = coerce_id(metadata_id)
        total = 0
        for col in REFERENCE_COLUMNS:
            total += self.session.execute(select(func.count()).select_from(col.table).where(col == mid)).scalar_one()
        return total

    def build_index(self, fresh: bool = False) -> MatchIndex:
        """Index of every record in insertion order.

        Cached until the next write through this handle. Writes made through
        other sessions are invisible to the cache; pass `fresh=True` to read
        the table again.
        """
        if fresh or self._index is None or self._index_generation != self.generation:
            records = self.session.query(Metadata).order_by(Metadata.id.asc()).all()
            self._index = MatchIndex.build(records)
            self._index_generation = self.generation
        return self._index

    # ---- writes ----

    def create(
        self,
        category: str,
        value: str,
        label: str,
        aliases: Any = None,
        sort_order: int = 0,
        is_active: bool = True,
        extra: Any = None,
    ) -> Metadata:
        category = (category or "").strip()
        value = (value or "").strip()
        label = (label or "").strip()
        if not category or not value or not label:
            raise ValueError("category, value and label are required")
        exists = (
            self.session.query(Metadata.id)
            .filter(Metadata.category == category, Metadata.value == value)
            .first()
        )
        if exists:
            raise DuplicateMetadata(category, value)
        rec = Metadata(
            category=category,
            value=value,
            label=label,
            aliases=normalize_aliases(aliases),
            sort_order=sort_order or 0,
            is_active=True if is_active is None else bool(is_active),
            extra=extra,
        )
        self.session.add(rec)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent create; caller must roll back
            raise DuplicateMetadata(category, value) from exc
        self._audit(rec.id, "created", None, f"{category}:{value}")
        self._touch()
        return rec

    def update(self, metadata_id: Any, **changes: Any) -> Metadata:
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        rec = self.get(metadata_id)
        for field, new in changes.items():
            if new is None and field in ("sort_order", "is_active"):
                # null means "not sent" for these columns
                continue
            if field == "aliases":
                new = normalize_aliases(new)
            elif field == "label":
                new = (new or "").strip()
                if not new:
                    raise ValueError("label must not be empty")
            elif field == "sort_order":
                new = int(new)
            elif field == "is_active":
                new = bool(new)
            old = getattr(rec, field)
            if old == new:
                continue
            setattr(rec, field, new)
            self._audit(rec.id, field, old, new)
        self.session.flush()
        self._touch()
        return rec

    def deactivate(self, metadata_id: Any) -> Metadata:
        return self.update(metadata_id, is_active=False)

    def delete(self, metadata_id: Any) -> None:
        rec = self.get(metadata_id)
        refs = self.reference_count(rec.id)
        if refs:
            raise RegistryConflict(rec.id, refs)
        self._audit(rec.id, "deleted", f"{rec.category}:{rec.value}", None)
        self.session.delete(rec)
        self.session.flush()
        self._touch()

    def _audit(self, resource_id: Optional[int], field: str, old: Any, new: Any) -> None:
        self.session.add(
            AuditLog(
                resource_type="metadata",
                resource_id=resource_id,
                field=field,
                old_value=_audit_text(old),
                new_value=_audit_text(new),
                actor=self.actor,
            )
        )

    def _touch(self) -> None:
        self.generation += 1
