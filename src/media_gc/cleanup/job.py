"""Orphaned media cleanup run.

Two phases share one operation budget:

- Phase A: permanently delete items already in the trash
- Phase B: move newly detected orphans to the trash

Orphan detection:

- Files: not referenced by any document in any scanned collection
- Images: not referenced by any document and without tags

A failed delete of a single item is counted in ``errors``; a failed query
aborts the run and propagates to the caller so the scheduler can retry it.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict

from media_gc.cleanup.orphans import OrphanDetector
from media_gc.cleanup.scanner import ReferenceScanner
from media_gc.cleanup.trash import TrashSweeper
from media_gc.config.settings import CleanupConfig
from media_gc.exceptions import ConfigurationError
from media_gc.logging_config import logger
from media_gc.services.store import DocumentStore


@dataclass
class CleanupResult:
    """Counters reported by one cleanup run."""
    permanently_deleted_files: int = 0
    permanently_deleted_images: int = 0
    trashed_files: int = 0
    trashed_images: int = 0
    skipped_images: int = 0
    errors: int = 0

    @property
    def total_operations(self) -> int:
        return (
            self.permanently_deleted_files
            + self.permanently_deleted_images
            + self.trashed_files
            + self.trashed_images
        )

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class MediaCleanupJob:
    """Coordinates Phase A, the reference scan and Phase B."""

    def __init__(self, store: DocumentStore, config: CleanupConfig | None = None):
        """Initialize the job.

        Args:
            store: Document store holding media and content documents
            config: Cleanup configuration, defaults to CleanupConfig()
        """
        self.store = store
        self.config = config or CleanupConfig()

    async def run(
        self,
        max_operations: int | None = None,
        grace_period_hours: float | None = None,
        now: datetime | None = None,
        dry_run: bool | None = None,
        heartbeat: Callable[[str], Awaitable[None]] | None = None,
    ) -> CleanupResult:
        """Run one cleanup pass.

        Args:
            max_operations: Budget of deletes plus soft deletes for this run
            grace_period_hours: Minimum age of assets considered orphans
            now: Reference instant for the grace period, converted to UTC;
                naive values are taken as UTC. Defaults to now
            dry_run: Classify without mutating anything
            heartbeat: Awaited with the name of each finished step

        Returns:
            CleanupResult with the run's counters

        Raises:
            ConfigurationError: If the budget or grace period is negative
            StoreError: If a query fails; the run is aborted
        """
        if max_operations is None:
            max_operations = self.config.max_operations
        if grace_period_hours is None:
            grace_period_hours = self.config.grace_period_hours
        if dry_run is None:
            dry_run = self.config.dry_run

        if max_operations < 0:
            raise ConfigurationError("max_operations must not be negative", {"max_operations": max_operations})
        if grace_period_hours < 0:
            raise ConfigurationError(
                "grace_period_hours must not be negative",
                {"grace_period_hours": grace_period_hours},
            )

        now = _as_utc(now or datetime.now(timezone.utc))
        cutoff = now - timedelta(hours=grace_period_hours)

        logger.bind(
            cutoff=cutoff.isoformat(),
            max_operations=max_operations,
            grace_period_hours=grace_period_hours,
            dry_run=dry_run,
        ).info("Starting orphaned media cleanup")

        result = CleanupResult()

        try:
            trash = await TrashSweeper(self.store, dry_run=dry_run).sweep(max_operations)
            result.permanently_deleted_files = trash.permanently_deleted_files
            result.permanently_deleted_images = trash.permanently_deleted_images
            result.errors += trash.errors
            if heartbeat is not None:
                await heartbeat("trash_swept")

            remaining = max_operations - result.total_operations
            if remaining > 0:
                refs = await ReferenceScanner(
                    self.store,
                    self.config.references,
                    page_size=self.config.page_size,
                ).scan()
                if heartbeat is not None:
                    await heartbeat("references_scanned")
                orphans = await OrphanDetector(
                    self.store,
                    page_size=self.config.page_size,
                    dry_run=dry_run,
                ).detect_and_trash(refs, remaining, cutoff)
                result.trashed_files = orphans.trashed_files
                result.trashed_images = orphans.trashed_images
                result.skipped_images = orphans.skipped_images
                result.errors += orphans.errors
        except Exception as e:
            logger.bind(error=str(e), **result.to_dict()).error(
                "Error during orphaned media cleanup"
            )
            raise

        logger.bind(**result.to_dict(), total_operations=result.total_operations).info(
            "Orphaned media cleanup completed"
        )
        return result


async def run_media_cleanup(
    store: DocumentStore,
    config: CleanupConfig | None = None,
    now: datetime | None = None,
) -> Dict[str, Any]:
    """Run a cleanup pass and return its counters as a plain dict."""
    result = await MediaCleanupJob(store, config).run(now=now)
    return result.to_dict()


def _as_utc(moment: datetime) -> datetime:
    # stored timestamps are UTC wall-clock; naive input is taken as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
