"""Link historical free-text rows to canonical metadata records.

Dry-run by default; `apply=True` writes. Both modes run the same matching
and report the same `updated` counts; only persistence differs.

Strategy:
 1) Build the match index once per run, always from the table itself.
 2) Page through each target table by primary key, selecting only the id,
    free-text and link columns.
 3) For each field, look the text up; stage a link update when the match
    differs from the stored link. The free text itself is never rewritten.
 4) Count every value with no match per category; that list is what curators
    turn into new aliases.
 5) Scene tags: one join row per matched tag not already linked; unmatched
    tags stay only in the legacy array.

Safe to re-run: a second apply stages nothing.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.models import Combo, ComboSceneMetadata, Job, Reel, Rod, Trip

from .categories import COMBO_SCENE_TAG
from .errors import BackfillAborted, BackfillLocked
from .match_index import CollisionWarning, MatchIndex
from .normalize import normalize
from .registry import MetadataRegistry
from .resolver import REEL_FIELDS, ROD_FIELDS, TRIP_FIELDS, FieldSpec

_log = logging.getLogger(__name__)

LOCK_KEY = "metadata_backfill"
SCENE_ENTITY = "ComboSceneMetadata"


@dataclass(frozen=True)
class LinkTarget:
    entity: str
    model: type
    fields: Tuple[FieldSpec, ...]


LINK_TARGETS: Tuple[LinkTarget, ...] = (
    LinkTarget("Rod", Rod, ROD_FIELDS),
    LinkTarget("Reel", Reel, REEL_FIELDS),
    LinkTarget("Trip", Trip, TRIP_FIELDS),
)

ENTITY_NAMES = tuple(t.entity for t in LINK_TARGETS) + (SCENE_ENTITY,)


@dataclass
class EntityStats:
    entity: str
    processed: int = 0
    updated: int = 0
    unmatched: Dict[str, Counter] = field(default_factory=dict)

    def record_unmatched(self, category: str, raw_value: Optional[str]) -> None:
        # blanks are "no data", not curation candidates
        if not normalize(raw_value):
            return
        self.unmatched.setdefault(category, Counter())[raw_value] += 1

    def to_dict(self) -> dict:
        return {
            "entity": self.entity,
            "processed": self.processed,
            "updated": self.updated,
            "unmatched_by_category": {
                category: dict(counter.most_common()) for category, counter in sorted(self.unmatched.items())
            },
        }


@dataclass
class BackfillReport:
    apply: bool
    entities: List[EntityStats] = field(default_factory=list)
    collisions: List[CollisionWarning] = field(default_factory=list)

    def stats_for(self, entity: str) -> Optional[EntityStats]:
        for stats in self.entities:
            if stats.entity == entity:
                return stats
        return None

    @property
    def total_updated(self) -> int:
        return sum(s.updated for s in self.entities)

    def to_dict(self) -> dict:
        return {
            "apply": self.apply,
            "entities": [s.to_dict() for s in self.entities],
            "collisions": [c.to_dict() for c in self.collisions],
        }

    def format_lines(self) -> List[str]:
        lines: List[str] = []
        for stats in self.entities:
            suffix = "" if self.apply else " (dry-run)"
            lines.append(f"[{stats.entity}] processed={stats.processed} updated={stats.updated}{suffix}")
            for category, counter in sorted(stats.unmatched.items()):
                if not counter:
                    continue
                lines.append(f"  Unmatched {category}:")
                for value, count in counter.most_common():
                    lines.append(f"    - {value}: {count}")
        if self.collisions:
            lines.append(f"Key collisions ({len(self.collisions)}):")
            for warning in self.collisions:
                lines.append(f"  - {warning}")
        return lines


class MetadataBackfill:
    def __init__(
        self,
        session: Session,
        registry: Optional[MetadataRegistry] = None,
        apply: bool = False,
        batch_size: int = 200,
        entities: Optional[Sequence[str]] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        unknown = set(entities or ()) - set(ENTITY_NAMES)
        if unknown:
            raise ValueError(f"Unknown entities: {', '.join(sorted(unknown))}")
        self.session = session
        self.registry = registry or MetadataRegistry(session)
        self.apply = apply
        self.batch_size = batch_size
        self.entities = tuple(entities) if entities else ENTITY_NAMES

    # ---- public ----

    def run(self) -> BackfillReport:
        job = self._acquire_lock()
        report = BackfillReport(apply=self.apply)
        try:
            index = self.registry.build_index(fresh=True)
            report.collisions = list(index.collisions)
            _log.info(
                "%s metadata backfill over %d index keys",
                "Applying" if self.apply else "Dry run:",
                len(index),
            )
            for target in LINK_TARGETS:
                if target.entity in self.entities:
                    stats = EntityStats(target.entity)
                    report.entities.append(stats)
                    self._link_fields(target, index, stats)
            if SCENE_ENTITY in self.entities:
                stats = EntityStats(SCENE_ENTITY)
                report.entities.append(stats)
                self._link_scene_tags(index, stats)
        except Exception as exc:
            self.session.rollback()
            _log.exception("Metadata backfill aborted")
            self._release_lock(job, "failed", report)
            raise BackfillAborted(report, exc) from exc
        self._release_lock(job, "completed", report)
        return report

    # ---- per-target passes ----

    def _link_fields(self, target: LinkTarget, index: MatchIndex, stats: EntityStats) -> None:
        model = target.model
        columns = [model.id]
        for spec in target.fields:
            columns.append(getattr(model, spec.text_attr))
            columns.append(getattr(model, spec.id_attr))

        for page in self._pages(model, columns):
            staged: List[Tuple[int, Dict[str, int]]] = []
            for row in page:
                stats.processed += 1
                values: Dict[str, int] = {}
                for spec in target.fields:
                    raw = getattr(row, spec.text_attr)
                    matched = index.lookup(spec.category, raw)
                    if matched is None:
                        stats.record_unmatched(spec.category, raw)
                    elif getattr(row, spec.id_attr) != matched:
                        values[spec.id_attr] = matched
                if values:
                    staged.append((row.id, values))
            stats.updated += len(staged)
            if self.apply and staged:
                for row_id, values in staged:
                    self.session.execute(update(model).where(model.id == row_id).values(**values))
                self.session.commit()
        _log.info("[%s] processed=%d updated=%d", stats.entity, stats.processed, stats.updated)

    def _link_scene_tags(self, index: MatchIndex, stats: EntityStats) -> None:
        for page in self._pages(Combo, [Combo.id, Combo.scene_tags]):
            combo_ids = [row.id for row in page]
            existing = {
                (link.combo_id, link.metadata_id)
                for link in self.session.execute(
                    select(ComboSceneMetadata.combo_id, ComboSceneMetadata.metadata_id).where(
                        ComboSceneMetadata.combo_id.in_(combo_ids)
                    )
                )
            }
            staged: List[Tuple[int, int]] = []
            for row in page:
                stats.processed += 1
                if not isinstance(row.scene_tags, list):
                    continue
                for raw in row.scene_tags:
                    if not isinstance(raw, str):
                        continue
                    matched = index.lookup(COMBO_SCENE_TAG, raw)
                    if matched is None:
                        stats.record_unmatched(COMBO_SCENE_TAG, raw)
                        continue
                    pair = (row.id, matched)
                    if pair in existing:
                        continue
                    existing.add(pair)
                    staged.append(pair)
            stats.updated += len(staged)
            if self.apply and staged:
                self.session.add_all(ComboSceneMetadata(combo_id=cid, metadata_id=mid) for cid, mid in staged)
                self.session.commit()
        _log.info("[%s] processed=%d updated=%d", stats.entity, stats.processed, stats.updated)

    def _pages(self, model: type, columns: Sequence) -> Iterator[list]:
        """Yield rows in primary-key pages; keeps memory bounded and tolerates commits between pages."""
        last_id = 0
        while True:
            rows = self.session.execute(
                select(*columns).where(model.id > last_id).order_by(model.id.asc()).limit(self.batch_size)
            ).all()
            if not rows:
                return
            yield rows
            last_id = rows[-1].id

    # ---- advisory lock ----

    def _acquire_lock(self) -> Job:
        job = Job(
            name=LOCK_KEY,
            status="running",
            progress=0,
            payload={"apply": self.apply, "entities": list(self.entities)},
            lock_key=LOCK_KEY,
        )
        self.session.add(job)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            _log.warning("Metadata backfill already running; refusing to start")
            raise BackfillLocked(LOCK_KEY) from exc
        return job

    def _release_lock(self, job: Job, status: str, report: BackfillReport) -> None:
        job.status = status
        job.progress = 100 if status == "completed" else job.progress
        job.payload = report.to_dict()
        job.lock_key = None
        self.session.commit()


def run_backfill(session: Session, apply: bool = False, entities: Optional[Iterable[str]] = None, batch_size: int = 200) -> BackfillReport:
    return MetadataBackfill(
        session,
        MetadataRegistry(session, actor="backfill"),
        apply=apply,
        batch_size=batch_size,
        entities=list(entities) if entities else None,
    ).run()
