"""Orphaned media garbage collection.

- Reference normalization and rich-text reference extraction
- Reference scan over every configured collection
- Phase A: permanent deletion of trashed media
- Phase B: trashing of unreferenced media past the grace period
"""

from media_gc.cleanup.job import CleanupResult, MediaCleanupJob, run_media_cleanup
from media_gc.cleanup.orphans import OrphanDetector, OrphanSweepResult
from media_gc.cleanup.references import (
    ABSENT,
    Absent,
    IdRef,
    PopulatedRef,
    ReferenceValue,
    normalize_reference,
    to_reference_value,
)
from media_gc.cleanup.richtext import BlockType, extract_image_ids, parse_rich_text
from media_gc.cleanup.scanner import ReferenceScanner, ReferenceSets
from media_gc.cleanup.specs import extract_references
from media_gc.cleanup.trash import TrashSweeper, TrashSweepResult

__all__ = [
    # Reference values
    "ReferenceValue",
    "IdRef",
    "PopulatedRef",
    "Absent",
    "ABSENT",
    "normalize_reference",
    "to_reference_value",
    # Rich text
    "BlockType",
    "parse_rich_text",
    "extract_image_ids",
    # Scan
    "extract_references",
    "ReferenceScanner",
    "ReferenceSets",
    # Phases
    "TrashSweeper",
    "TrashSweepResult",
    "OrphanDetector",
    "OrphanSweepResult",
    # Run
    "MediaCleanupJob",
    "CleanupResult",
    "run_media_cleanup",
]
