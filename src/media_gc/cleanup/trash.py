"""Phase A: permanently delete media that is already in the trash."""

from dataclasses import dataclass

from media_gc.config.references import MediaKind
from media_gc.logging_config import logger
from media_gc.services.store import DocumentStore


@dataclass
class TrashSweepResult:
    permanently_deleted_files: int = 0
    permanently_deleted_images: int = 0
    errors: int = 0

    @property
    def operations(self) -> int:
        return self.permanently_deleted_files + self.permanently_deleted_images


class TrashSweeper:
    """Removes trashed files and images for good.

    Files may use at most half of the budget; images get whatever the files
    left over. A failed delete is logged and counted, never fatal.
    """

    def __init__(self, store: DocumentStore, dry_run: bool = False):
        self.store = store
        self.dry_run = dry_run

    async def sweep(self, budget: int) -> TrashSweepResult:
        """Permanently delete trashed media within an operation budget.

        Args:
            budget: Maximum number of permanent deletions

        Returns:
            TrashSweepResult with deletion and error counts

        Raises:
            StoreError: If a candidate query fails
        """
        logger.info("Phase A: Permanently deleting trashed items")
        result = TrashSweepResult()

        result.permanently_deleted_files = await self._sweep_kind(
            MediaKind.FILE, budget // 2, result
        )
        result.permanently_deleted_images = await self._sweep_kind(
            MediaKind.IMAGE, budget - result.permanently_deleted_files, result
        )

        logger.bind(
            permanently_deleted_files=result.permanently_deleted_files,
            permanently_deleted_images=result.permanently_deleted_images,
        ).info("Phase A completed")
        return result

    async def _sweep_kind(self, kind: MediaKind, limit: int, result: TrashSweepResult) -> int:
        if limit <= 0:
            return 0

        trashed = await self.store.find(
            kind.value,
            {"deleted_at": {"exists": True}},
            limit=limit,
            depth=0,
            trash=True,
        )

        deleted = 0
        for doc in trashed.docs:
            if deleted >= limit:
                break
            log = logger.bind(
                collection=kind.value,
                asset_id=doc["id"],
                filename=doc.get("filename"),
                dry_run=self.dry_run,
            )
            try:
                if not self.dry_run:
                    # deleting an already-trashed record removes it permanently
                    await self.store.delete(kind.value, doc["id"])
                deleted += 1
                log.info(f"Permanently deleted trashed {kind.label}")
            except Exception as e:
                log.bind(error=str(e)).error(f"Failed to permanently delete trashed {kind.label}")
                result.errors += 1

        return deleted
