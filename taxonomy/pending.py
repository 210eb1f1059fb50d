"""Curation queue of free-text rod/reel brands that are not linked yet.

Curators read the queue, then either add an alias (so the next backfill
links the rows) or bind a raw brand to a record directly with
`link_pending_brand`.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from db.models import Reel, Rod

from .categories import REEL_BRAND, ROD_BRAND
from .registry import MetadataRegistry

BRAND_TARGETS = {
    "rod": (Rod, ROD_BRAND),
    "reel": (Reel, REEL_BRAND),
}


@dataclass
class PendingBrand:
    type: str
    raw_brand: str
    display_brand: str
    count: int

    def to_dict(self) -> dict:
        return asdict(self)


def _kinds(kind: str) -> List[str]:
    if kind == "all":
        return list(BRAND_TARGETS)
    if kind not in BRAND_TARGETS:
        raise ValueError(f"Unsupported brand type {kind!r}; expected one of all, rod, reel")
    return [kind]


def list_pending_brands(session: Session, kind: str = "all") -> List[PendingBrand]:
    """Unlinked brand texts grouped by exact raw value, most frequent first."""
    results: List[PendingBrand] = []
    for k in _kinds(kind):
        model, _category = BRAND_TARGETS[k]
        rows = (
            session.query(model.brand, func.count(model.id))
            .filter(model.brand_metadata_id.is_(None), model.brand.isnot(None))
            .group_by(model.brand)
            .all()
        )
        for raw, count in rows:
            display = (raw or "").strip()
            if not display:
                continue
            results.append(PendingBrand(type=k, raw_brand=raw, display_brand=display, count=int(count)))
    results.sort(key=lambda p: (-p.count, p.display_brand.casefold(), p.display_brand))
    return results


def link_pending_brand(session: Session, registry: MetadataRegistry, kind: str, brand: str, metadata_id) -> int:
    """Attach every unlinked row whose brand is exactly `brand` to a registry record.

    The brand text is replaced with the record's label, keeping linked text
    equal to the label. Returns the number of rows updated.
    """
    if kind not in BRAND_TARGETS:
        raise ValueError(f"Unsupported brand type {kind!r}; expected rod or reel")
    if not (brand or "").strip():
        raise ValueError("brand must not be empty")
    model, category = BRAND_TARGETS[kind]
    rec = registry.find_by_id(metadata_id, category)
    updated = (
        session.query(model)
        .filter(model.brand == brand, model.brand_metadata_id.is_(None))
        .update({model.brand_metadata_id: rec.id, model.brand: rec.label}, synchronize_session=False)
    )
    session.flush()
    return int(updated)
