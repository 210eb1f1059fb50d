"""Write-time reconciliation of (free text, metadata id) field pairs.

Entity write handlers call the resolver once per reconcilable field before
they persist anything. It runs inside the caller's transaction and performs
at most one registry read per field; nothing is written here except through
`apply` / `apply_scene_tags`, which only touch the objects handed to them.

Precedence for one field:

1. id given      -> must exist, be active and belong to the category; the text
                    becomes the record's label whatever the client sent.
2. id is None    -> explicit detach; accompanying text (if any) passes through.
3. id omitted,
   text given    -> text stored as-is, link cleared. No auto-matching.
4. both omitted  -> no change.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from db.models import Combo, ComboSceneMetadata

from .categories import COMBO_SCENE_TAG, LENGTH_UNIT, REEL_BRAND, ROD_BRAND, ROD_POWER, WEATHER_TYPE
from .errors import InvalidMetadataReference, MetadataNotFound
from .registry import MetadataRegistry, coerce_id


class _Unset:
    """Marks a field the client did not send, as opposed to an explicit null."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class FieldSpec:
    category: str
    text_attr: str
    id_attr: str


ROD_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(ROD_BRAND, "brand", "brand_metadata_id"),
    FieldSpec(ROD_POWER, "power", "power_metadata_id"),
    FieldSpec(LENGTH_UNIT, "length_unit", "length_unit_metadata_id"),
)
REEL_FIELDS: Tuple[FieldSpec, ...] = (FieldSpec(REEL_BRAND, "brand", "brand_metadata_id"),)
TRIP_FIELDS: Tuple[FieldSpec, ...] = (FieldSpec(WEATHER_TYPE, "weather_type", "weather_metadata_id"),)


@dataclass(frozen=True)
class Resolution:
    """Values to persist for one field pair; UNSET means leave the column alone."""

    metadata_id: Any = UNSET
    free_text: Any = UNSET

    @property
    def is_noop(self) -> bool:
        return self.metadata_id is UNSET and self.free_text is UNSET

    def apply(self, target: Any, spec: FieldSpec) -> None:
        if self.metadata_id is not UNSET:
            setattr(target, spec.id_attr, self.metadata_id)
        if self.free_text is not UNSET:
            setattr(target, spec.text_attr, self.free_text)


@dataclass(frozen=True)
class SceneTagSelection:
    """Scene tags as two parallel sets: canonical links and leftover free text."""

    metadata_ids: Tuple[int, ...]
    labels: Tuple[str, ...]
    custom_tags: Tuple[str, ...]

    @property
    def scene_tags(self) -> List[str]:
        merged: List[str] = []
        for tag in self.labels + self.custom_tags:
            if tag not in merged:
                merged.append(tag)
        return merged


def _clean_tags(tags: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    out: List[str] = []
    for tag in tags or ():
        if not isinstance(tag, str):
            continue
        t = tag.strip()
        if t and t not in out:
            out.append(t)
    return tuple(out)


class MetadataResolver:
    def __init__(self, registry: MetadataRegistry):
        self.registry = registry

    def resolve(self, category: str, metadata_id: Any = UNSET, free_text: Any = UNSET) -> Resolution:
        if metadata_id is not UNSET and metadata_id is not None:
            try:
                rec = self.registry.find_by_id(metadata_id, category, active_only=True)
            except MetadataNotFound as exc:
                raise InvalidMetadataReference(category, metadata_id) from exc
            return Resolution(metadata_id=rec.id, free_text=rec.label)
        if metadata_id is None:
            return Resolution(metadata_id=None, free_text=free_text)
        if free_text is not UNSET:
            return Resolution(metadata_id=None, free_text=free_text)
        return Resolution()

    def resolve_payload(self, payload: Mapping[str, Any], fields: Sequence[FieldSpec]) -> Dict[FieldSpec, Resolution]:
        """Resolve every field of one write; raises before returning if any field is invalid."""
        resolved: Dict[FieldSpec, Resolution] = {}
        for spec in fields:
            resolved[spec] = self.resolve(
                spec.category,
                payload.get(spec.id_attr, UNSET),
                payload.get(spec.text_attr, UNSET),
            )
        return resolved

    def apply(self, payload: Mapping[str, Any], target: Any, fields: Sequence[FieldSpec]) -> Dict[str, Any]:
        """Resolve all fields, then assign them to `target`.

        Returns the assigned column values. On InvalidMetadataReference the
        target has not been modified.
        """
        resolved = self.resolve_payload(payload, fields)
        changes: Dict[str, Any] = {}
        for spec, res in resolved.items():
            res.apply(target, spec)
            if res.metadata_id is not UNSET:
                changes[spec.id_attr] = res.metadata_id
            if res.free_text is not UNSET:
                changes[spec.text_attr] = res.free_text
        return changes

    def resolve_scene_tags(
        self,
        metadata_ids: Any = UNSET,
        custom_tags: Any = UNSET,
        current_ids: Iterable[int] = (),
        current_tags: Iterable[str] = (),
    ) -> SceneTagSelection:
        """Work out a combo's scene tags after a write.

        `current_ids` / `current_tags` describe the stored state; whichever of
        `metadata_ids` / `custom_tags` is omitted keeps its stored part.
        Every supplied id must be an active scene tag or the whole write fails.
        """
        if metadata_ids is UNSET:
            current = self.registry.find_many(current_ids, COMBO_SCENE_TAG)
            by_id = {rec.id: rec for rec in current}
            ids = tuple(mid for mid in dict.fromkeys(current_ids) if mid in by_id)
            labels = tuple(by_id[mid].label for mid in ids)
        else:
            requested = list(dict.fromkeys(metadata_ids or ()))
            records = self.registry.find_many(requested, COMBO_SCENE_TAG, active_only=True)
            by_id = {rec.id: rec for rec in records}
            missing = [mid for mid in requested if coerce_id(mid) not in by_id]
            if missing:
                raise InvalidMetadataReference(COMBO_SCENE_TAG, missing[0])
            ids = tuple(dict.fromkeys(coerce_id(mid) for mid in requested))
            labels = tuple(by_id[mid].label for mid in ids)

        if custom_tags is UNSET:
            stored_labels = set(labels)
            if metadata_ids is not UNSET:
                # labels of the links being replaced are not custom tags either
                stored_labels |= {rec.label for rec in self.registry.find_many(current_ids, COMBO_SCENE_TAG)}
            custom = tuple(t for t in _clean_tags(current_tags) if t not in stored_labels)
        else:
            custom = _clean_tags(custom_tags)

        return SceneTagSelection(metadata_ids=ids, labels=_dedupe(labels), custom_tags=custom)


def _dedupe(items: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(items))


def apply_scene_tags(session: Session, combo: Combo, selection: SceneTagSelection) -> None:
    """Sync a combo's join rows and legacy tag array to `selection`."""
    wanted = set(selection.metadata_ids)
    for link in list(combo.scene_links):
        if link.metadata_id not in wanted:
            combo.scene_links.remove(link)
    have = {link.metadata_id for link in combo.scene_links}
    for mid in selection.metadata_ids:
        if mid not in have:
            combo.scene_links.append(ComboSceneMetadata(metadata_id=mid))
            have.add(mid)
    combo.scene_tags = selection.scene_tags
    session.flush()
