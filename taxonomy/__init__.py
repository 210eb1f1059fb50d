"""Metadata reconciliation: keeps free-text gear/trip descriptors linked to the curated taxonomy.

Re-exports the pieces entity handlers and scripts use (e.g.
`from taxonomy import MetadataRegistry, MetadataResolver`).
"""
from .categories import METADATA_CATEGORIES  # noqa: F401
from .errors import (  # noqa: F401
    BackfillAborted,
    BackfillLocked,
    DuplicateMetadata,
    InvalidMetadataReference,
    MetadataError,
    MetadataNotFound,
    RegistryConflict,
)
from .match_index import CollisionWarning, MatchIndex, build_index  # noqa: F401
from .normalize import normalize  # noqa: F401
from .registry import MetadataRegistry  # noqa: F401
from .resolver import (  # noqa: F401
    REEL_FIELDS,
    ROD_FIELDS,
    TRIP_FIELDS,
    UNSET,
    MetadataResolver,
    Resolution,
    SceneTagSelection,
    apply_scene_tags,
)
from .backfill import BackfillReport, MetadataBackfill, run_backfill  # noqa: F401

__all__ = [
    "METADATA_CATEGORIES",
    "BackfillAborted",
    "BackfillLocked",
    "DuplicateMetadata",
    "InvalidMetadataReference",
    "MetadataError",
    "MetadataNotFound",
    "RegistryConflict",
    "CollisionWarning",
    "MatchIndex",
    "build_index",
    "normalize",
    "MetadataRegistry",
    "REEL_FIELDS",
    "ROD_FIELDS",
    "TRIP_FIELDS",
    "UNSET",
    "MetadataResolver",
    "Resolution",
    "SceneTagSelection",
    "apply_scene_tags",
    "BackfillReport",
    "MetadataBackfill",
    "run_backfill",
]
