"""Reference scan: every media id referenced by any live document."""

from dataclasses import dataclass, field
from typing import Dict, List, Set

from media_gc.cleanup.references import normalize_reference
from media_gc.cleanup.specs import extract_references
from media_gc.config.references import DEFAULT_REFERENCE_SPECS, MediaKind, ReferenceSpec
from media_gc.logging_config import logger
from media_gc.services.store import DocumentStore

PAGINATION_LIMIT = 1000


@dataclass
class ReferenceSets:
    """Referenced media ids, one set per media kind."""
    file_ids: Set[int] = field(default_factory=set)
    image_ids: Set[int] = field(default_factory=set)

    def for_kind(self, kind: MediaKind) -> Set[int]:
        return self.file_ids if kind is MediaKind.FILE else self.image_ids


class ReferenceScanner:
    """Pages through every referencing collection and collects media ids.

    This is the most expensive step of a cleanup run, so it runs once and
    the result is shared by every orphan check of the run.
    """

    def __init__(
        self,
        store: DocumentStore,
        specs: List[ReferenceSpec] | None = None,
        page_size: int = PAGINATION_LIMIT,
    ):
        """Initialize the scanner.

        Args:
            store: Document store to read from
            specs: Where references can appear, defaults to the shipped table
            page_size: Documents fetched per page
        """
        self.store = store
        self.specs = list(specs) if specs is not None else list(DEFAULT_REFERENCE_SPECS)
        self.page_size = page_size

    async def scan(self) -> ReferenceSets:
        """Collect referenced file and image ids.

        Raises:
            StoreError: If any page cannot be fetched
        """
        refs = ReferenceSets()
        for spec in self.specs:
            counts = await self._scan_collection(spec, refs)
            logger.bind(collection=spec.collection, **counts).debug(
                f"Scanned {spec.collection} for media references"
            )

        logger.bind(
            referenced_file_count=len(refs.file_ids),
            referenced_image_count=len(refs.image_ids),
        ).info("Reference scan completed")
        return refs

    async def _scan_collection(self, spec: ReferenceSpec, refs: ReferenceSets) -> Dict[str, int]:
        documents = 0
        references = 0
        page = 1
        has_more = True

        while has_more:
            result = await self.store.find(
                spec.collection,
                spec.where,
                page=page,
                limit=self.page_size,
                depth=spec.depth,
            )

            for doc in result.docs:
                documents += 1
                for kind, raw in extract_references(spec, doc):
                    media_id = normalize_reference(raw)
                    if media_id is not None:
                        refs.for_kind(kind).add(media_id)
                        references += 1

            has_more = result.has_next_page
            page += 1

        return {"documents": documents, "references": references}
