"""Phase B: move unreferenced media past the grace period to the trash."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Set

from media_gc.cleanup.scanner import PAGINATION_LIMIT, ReferenceSets
from media_gc.config.references import MediaKind
from media_gc.logging_config import logger
from media_gc.services.store import DocumentStore


@dataclass
class OrphanSweepResult:
    trashed_files: int = 0
    trashed_images: int = 0
    skipped_images: int = 0
    errors: int = 0

    @property
    def operations(self) -> int:
        return self.trashed_files + self.trashed_images


class OrphanDetector:
    """Soft-deletes media that no live document references.

    Candidates are live assets created strictly before the cutoff. Files are
    capped at half of the budget, rounded up, and images get the rest.
    Referenced assets are left alone; tagged images are kept and counted as
    skipped.

    Candidates are walked in id order, one keyset page at a time, until the
    kind's cap is reached or the candidates run out. Preserved candidates
    therefore never hide orphans that sort after them.
    """

    def __init__(
        self,
        store: DocumentStore,
        page_size: int = PAGINATION_LIMIT,
        dry_run: bool = False,
    ):
        self.store = store
        self.page_size = page_size
        self.dry_run = dry_run

    async def detect_and_trash(
        self,
        refs: ReferenceSets,
        budget: int,
        cutoff: datetime,
    ) -> OrphanSweepResult:
        """Trash orphaned files and images within an operation budget.

        Args:
            refs: Referenced media ids from the reference scan
            budget: Maximum number of soft deletions
            cutoff: Only assets created before this instant are eligible

        Returns:
            OrphanSweepResult with trash, skip and error counts

        Raises:
            StoreError: If a candidate query fails
        """
        logger.info("Phase B: Trashing orphaned media")
        result = OrphanSweepResult()

        result.trashed_files = await self._trash_orphans(
            MediaKind.FILE, refs.file_ids, (budget + 1) // 2, cutoff, result
        )
        result.trashed_images = await self._trash_orphans(
            MediaKind.IMAGE, refs.image_ids, budget - result.trashed_files, cutoff, result
        )

        logger.bind(
            trashed_files=result.trashed_files,
            trashed_images=result.trashed_images,
            skipped_images=result.skipped_images,
        ).info("Phase B completed")
        return result

    async def _trash_orphans(
        self,
        kind: MediaKind,
        referenced: Set[int],
        cap: int,
        cutoff: datetime,
        result: OrphanSweepResult,
    ) -> int:
        trashed = 0
        if cap <= 0:
            return trashed

        async for doc in self._candidates(kind, cutoff):
            if trashed >= cap:
                logger.bind(collection=kind.value, cap=cap).info(
                    f"Reached {kind.label} budget, stopping orphan detection"
                )
                break

            if doc["id"] in referenced:
                continue

            # tagged images are kept even when nothing references them
            if kind is MediaKind.IMAGE and doc.get("tags"):
                result.skipped_images += 1
                continue

            if await self._trash(kind, doc):
                trashed += 1
            else:
                result.errors += 1

        return trashed

    async def _candidates(self, kind: MediaKind, cutoff: datetime) -> AsyncIterator[Dict[str, Any]]:
        last_id = None
        while True:
            conditions: list[Dict[str, Any]] = [
                {"created_at": {"less_than": cutoff}},
                {"deleted_at": {"exists": False}},
            ]
            if last_id is not None:
                conditions.append({"id": {"greater_than": last_id}})

            page = await self.store.find(
                kind.value,
                {"and": conditions},
                limit=self.page_size,
                depth=0,
            )
            for doc in page.docs:
                yield doc

            if not page.has_next_page or not page.docs:
                return
            last_id = page.docs[-1]["id"]

    async def _trash(self, kind: MediaKind, doc: Dict[str, Any]) -> bool:
        log = logger.bind(
            collection=kind.value,
            asset_id=doc["id"],
            filename=doc.get("filename"),
            created_at=str(doc.get("created_at")),
            dry_run=self.dry_run,
        )
        try:
            if not self.dry_run:
                await self.store.update(
                    kind.value,
                    doc["id"],
                    {"deleted_at": datetime.now(timezone.utc)},
                )
            log.info(f"Moved orphaned {kind.label} to trash")
            return True
        except Exception as e:
            log.bind(error=str(e)).error(f"Failed to trash orphaned {kind.label}")
            return False
