from __future__ import annotations

from typing import Any, Optional

from .categories import category_noun


class MetadataError(Exception):
    """Base class for taxonomy errors; `status_code` is the HTTP class callers map to."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidMetadataReference(MetadataError):
    """A client-supplied metadata id is unknown, inactive or from another category.

    The write that carried it must be aborted; the user has to re-pick.
    """

    status_code = 400

    def __init__(self, category: str, metadata_id: Any, message: Optional[str] = None):
        self.category = category
        self.metadata_id = metadata_id
        super().__init__(
            message
            or f"The selected {category_noun(category)} is no longer available, please refresh and try again"
        )


class MetadataNotFound(MetadataError):
    status_code = 404

    def __init__(self, metadata_id: Any, category: Optional[str] = None):
        self.metadata_id = metadata_id
        self.category = category
        where = f" in category {category!r}" if category else ""
        super().__init__(f"Metadata {metadata_id!r} not found{where}")


class DuplicateMetadata(MetadataError):
    status_code = 409

    def __init__(self, category: str, value: str):
        self.category = category
        self.value = value
        super().__init__(f"Metadata {category}:{value} already exists")


class RegistryConflict(MetadataError):
    """Delete attempted on a record that rows still reference; deactivate instead."""

    status_code = 409

    def __init__(self, metadata_id: Any, references: int):
        self.metadata_id = metadata_id
        self.references = references
        super().__init__(
            f"Metadata {metadata_id!r} is referenced by {references} row(s); deactivate it instead of deleting"
        )


class BackfillLocked(Exception):
    def __init__(self, lock_key: str):
        self.lock_key = lock_key
        super().__init__(f"Another run holds the {lock_key!r} lock")


class BackfillAborted(Exception):
    """A backfill failed mid-run. Pages committed before the failure stay applied;
    `report` describes everything attempted up to that point.
    """

    def __init__(self, report: Any, cause: BaseException):
        self.report = report
        super().__init__(f"Backfill aborted: {cause}")
