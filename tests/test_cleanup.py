"""Tests for the orphaned media cleanup run."""

from datetime import datetime, timedelta, timezone

import pytest

from media_gc.cleanup import MediaCleanupJob, run_media_cleanup
from media_gc.config.references import DEFAULT_REFERENCE_SPECS
from media_gc.config.settings import CleanupConfig
from media_gc.exceptions import ConfigurationError, StoreError
from media_gc.services.store import SqlAlchemyDocumentStore


def lexical(*blocks):
    return {
        "root": {
            "type": "root",
            "children": [
                {"type": "paragraph", "children": [{"type": "text", "text": "Intro"}]},
                *({"type": "block", "fields": fields} for fields in blocks),
            ],
        }
    }


async def run(store, **kwargs):
    return await MediaCleanupJob(store).run(**kwargs)


class CountingStore(SqlAlchemyDocumentStore):
    """Counts every mutation issued by the cleanup run."""

    def __init__(self, session):
        super().__init__(session)
        self.mutations = 0

    async def update(self, collection, doc_id, data):
        self.mutations += 1
        return await super().update(collection, doc_id, data)

    async def delete(self, collection, doc_id):
        self.mutations += 1
        await super().delete(collection, doc_id)


class FlakyStore(SqlAlchemyDocumentStore):
    """Fails mutations of selected ids, or every query of one collection."""

    def __init__(self, session, failing_ids=(), failing_collection=None):
        super().__init__(session)
        self.failing_ids = set(failing_ids)
        self.failing_collection = failing_collection

    async def find(self, collection, where=None, **kwargs):
        if collection == self.failing_collection:
            raise StoreError(f"Query failed for {collection}")
        return await super().find(collection, where, **kwargs)

    async def update(self, collection, doc_id, data):
        if doc_id in self.failing_ids:
            raise RuntimeError("disk full")
        return await super().update(collection, doc_id, data)

    async def delete(self, collection, doc_id):
        if doc_id in self.failing_ids:
            raise RuntimeError("disk full")
        await super().delete(collection, doc_id)


class TestScenarios:
    """End-to-end behaviour of a single run."""

    async def test_trashed_file_is_permanently_deleted(self, media, store):
        """Test that a file already in the trash is removed for good."""
        file = await media.create_file()
        await media.trash("files", file["id"])

        result = await run(store)

        assert result.permanently_deleted_files >= 1
        assert await media.is_gone("files", file["id"])

    async def test_orphaned_file_is_trashed(self, media, store):
        """Test that an unreferenced file past the grace period is trashed."""
        file = await media.create_file(hours_ago=48)

        result = await run(store)

        assert result.trashed_files >= 1
        assert await media.in_trash("files", file["id"])

    async def test_tagged_image_is_skipped(self, media, store):
        """Test that a tagged image is kept and counted as skipped."""
        tag = await media.create_tag()
        image = await media.create_image(hours_ago=48, tags=[tag["id"]])

        result = await run(store)

        assert result.skipped_images >= 1
        assert result.trashed_images == 0
        assert await media.is_live("images", image["id"])

    async def test_referenced_image_is_kept(self, media, store):
        """Test that an image referenced by an author survives."""
        image = await media.create_image(hours_ago=48)
        await store.create("authors", {"name": "Ada", "image": image["id"]})

        result = await run(store)

        assert result.trashed_images == 0
        assert await media.is_live("images", image["id"])

    async def test_recent_file_is_protected(self, media, store):
        """Test that a file inside the grace period is left alone."""
        file = await media.create_file()

        result = await run(store)

        assert result.trashed_files == 0
        assert await media.is_live("files", file["id"])

    async def test_empty_database(self, store):
        """Test that a run over an empty database reports zero counters."""
        result = await run(store)

        assert result.to_dict() == {
            "permanently_deleted_files": 0,
            "permanently_deleted_images": 0,
            "trashed_files": 0,
            "trashed_images": 0,
            "skipped_images": 0,
            "errors": 0,
        }

    async def test_mixed_run(self, media, store):
        """Test a run mixing trashed, orphaned and referenced media."""
        for _ in range(2):
            trashed = await media.create_file()
            await media.trash("files", trashed["id"])
        trashed_image = await media.create_image()
        await media.trash("images", trashed_image["id"])
        for _ in range(3):
            await media.create_file(hours_ago=30)
        orphan = await media.create_image(hours_ago=30)
        kept = await media.create_image(hours_ago=30)
        await store.create("lectures", {"title": "Stillness", "thumbnail": kept["id"]})

        result = await run(store)

        assert result.permanently_deleted_files == 2
        assert result.permanently_deleted_images == 1
        assert result.trashed_files == 3
        assert result.trashed_images == 1
        assert result.total_operations == 7
        assert await media.in_trash("images", orphan["id"])
        assert await media.is_live("images", kept["id"])

    async def test_run_media_cleanup_returns_counters(self, media, store):
        """Test that run_media_cleanup returns the six counters."""
        await media.create_file(hours_ago=48)

        counters = await run_media_cleanup(store)

        assert counters["trashed_files"] == 1
        assert set(counters) == {
            "permanently_deleted_files",
            "permanently_deleted_images",
            "trashed_files",
            "trashed_images",
            "skipped_images",
            "errors",
        }


class TestReferenceSafety:
    """Media reachable through any configured reference shape is kept."""

    async def test_lesson_intro_audio(self, media, store):
        """Test that a lesson's intro audio is kept."""
        audio = await media.create_file(hours_ago=48)
        orphan = await media.create_file(hours_ago=48)
        await store.create("lessons", {"title": "Breath", "intro_audio": audio["id"]})

        await run(store)

        assert await media.is_live("files", audio["id"])
        assert await media.in_trash("files", orphan["id"])

    async def test_lesson_video_panel(self, media, store):
        """Test that a file used by a video panel is kept."""
        video = await media.create_file(hours_ago=48, filename="panel.mp4", mime_type="video/mp4")
        await store.create("lessons", {
            "title": "Breath",
            "panels": [{"blockType": "video", "video": video["id"]}],
        })

        result = await run(store)

        assert result.trashed_files == 0
        assert await media.is_live("files", video["id"])

    async def test_lesson_text_panel_and_icon(self, media, store):
        """Test that a lesson icon and a text panel image are kept."""
        panel_image = await media.create_image(hours_ago=48)
        icon = await media.create_image(hours_ago=48)
        await store.create("lessons", {
            "title": "Breath",
            "icon": icon["id"],
            "panels": [{"blockType": "text", "title": "Look", "image": str(panel_image["id"])}],
        })

        result = await run(store)

        assert result.trashed_images == 0
        assert await media.is_live("images", panel_image["id"])
        assert await media.is_live("images", icon["id"])

    @pytest.mark.parametrize("collection", ["lectures", "meditations"])
    async def test_thumbnail(self, media, store, collection):
        """Test that a thumbnail image is kept."""
        image = await media.create_image(hours_ago=48)
        await store.create(collection, {"title": "Stillness", "thumbnail": image["id"]})

        await run(store)

        assert await media.is_live("images", image["id"])

    @pytest.mark.parametrize(
        "block",
        [
            lambda image_id: {"blockType": "textbox", "image": image_id},
            lambda image_id: {"blockType": "layout", "items": [{"title": "A"}, {"image": image_id}]},
            lambda image_id: {"blockType": "gallery", "items": [image_id]},
        ],
        ids=["textbox", "layout", "gallery"],
    )
    async def test_page_rich_text(self, media, store, block):
        """Test that images embedded in page rich text are kept."""
        image = await media.create_image(hours_ago=48)
        orphan = await media.create_image(hours_ago=48)
        await store.create("pages", {"title": "About", "content": lexical(block(image["id"]))})

        await run(store)

        assert await media.is_live("images", image["id"])
        assert await media.in_trash("images", orphan["id"])

    async def test_deleted_document_does_not_protect(self, media, store):
        """Test that a removed document no longer protects its media."""
        image = await media.create_image(hours_ago=48)
        author = await store.create("authors", {"name": "Ada", "image": image["id"]})
        await store.delete("authors", author["id"])

        result = await run(store)

        assert result.trashed_images == 1
        assert await media.in_trash("images", image["id"])

    async def test_populated_scan(self, media, store):
        """Test that references are found when relationships are populated."""
        image = await media.create_image(hours_ago=48)
        await store.create("authors", {"name": "Ada", "image": image["id"]})
        config = CleanupConfig(references=[
            spec.model_copy(update={"depth": 1}) for spec in DEFAULT_REFERENCE_SPECS
        ])

        result = await MediaCleanupJob(store, config).run()

        assert result.trashed_images == 0
        assert await media.is_live("images", image["id"])


class TestRunProperties:
    """Budget, grace period, idempotence and trash monotonicity."""

    async def test_grace_boundary_is_strict(self, media, store):
        """Test that an asset created exactly at the cutoff is kept."""
        now = datetime.now(timezone.utc)
        at_cutoff = await media.create_file(created_at=now - timedelta(hours=24))
        past_cutoff = await media.create_file(created_at=now - timedelta(hours=24, seconds=1))

        await run(store, now=now)

        assert await media.is_live("files", at_cutoff["id"])
        assert await media.in_trash("files", past_cutoff["id"])

    @pytest.mark.parametrize("offset_hours", [14, -12])
    async def test_grace_period_with_offset_now(self, media, store, offset_hours):
        """A now in another UTC offset still protects assets inside the window."""
        recent = await media.create_file(hours_ago=12)
        old = await media.create_file(hours_ago=30)
        now = datetime.now(timezone(timedelta(hours=offset_hours)))

        await run(store, now=now, grace_period_hours=24)

        assert await media.is_live("files", recent["id"])
        assert await media.in_trash("files", old["id"])

    async def test_naive_now_is_utc(self, media, store):
        """A naive now is read as UTC."""
        recent = await media.create_file(hours_ago=12)
        now = datetime.now(timezone.utc).replace(tzinfo=None)

        result = await run(store, now=now)

        assert result.trashed_files == 0
        assert await media.is_live("files", recent["id"])

    async def test_grace_period_override(self, media, store):
        """Test that the grace period can be overridden per run."""
        file = await media.create_file(hours_ago=2)

        result = await run(store, grace_period_hours=1)

        assert result.trashed_files == 1
        assert await media.in_trash("files", file["id"])

    @pytest.mark.parametrize("budget", [0, 1, 3, 7, 20])
    async def test_budget_bound(self, media, session, budget):
        """Test that a run never exceeds its operation budget."""
        for _ in range(4):
            file = await media.create_file()
            await media.trash("files", file["id"])
            image = await media.create_image()
            await media.trash("images", image["id"])
        for _ in range(5):
            await media.create_file(hours_ago=48)
            await media.create_image(hours_ago=48)
        store = CountingStore(session)

        result = await run(store, max_operations=budget)

        assert result.total_operations <= budget
        assert store.mutations == result.total_operations
        assert result.permanently_deleted_files <= budget // 2

    async def test_budget_split(self, media, store):
        """Test how the budget is shared between files and images."""
        for _ in range(3):
            file = await media.create_file()
            await media.trash("files", file["id"])
        image = await media.create_image()
        await media.trash("images", image["id"])
        for _ in range(3):
            await media.create_file(hours_ago=48)
            await media.create_image(hours_ago=48)

        result = await run(store, max_operations=6)

        # Phase A: files capped at 3, the one image fits in the rest
        assert result.permanently_deleted_files == 3
        assert result.permanently_deleted_images == 1
        # Phase B gets 2: one file, then one image
        assert result.trashed_files == 1
        assert result.trashed_images == 1

    async def test_odd_budget_rounds_file_half_up(self, media, store):
        """Orphaned files may take the larger half of an odd budget."""
        for _ in range(5):
            await media.create_file(hours_ago=48)
        for _ in range(5):
            await media.create_image(hours_ago=48)

        result = await run(store, max_operations=5)

        assert result.trashed_files == 3
        assert result.trashed_images == 2

    async def test_odd_budget_rounds_trash_half_down(self, media, store):
        """Trashed files may take only the smaller half of an odd budget."""
        for _ in range(5):
            file = await media.create_file()
            await media.trash("files", file["id"])

        result = await run(store, max_operations=5)

        assert result.permanently_deleted_files == 2

    async def test_heartbeat_after_each_step(self, media, store):
        """The heartbeat is awaited after the trash sweep and the reference scan."""
        await media.create_file(hours_ago=48)
        steps = []

        async def heartbeat(step):
            steps.append(step)

        await run(store, heartbeat=heartbeat)

        assert steps == ["trash_swept", "references_scanned"]

    async def test_heartbeat_without_remaining_budget(self, media, store):
        """No scan runs, and no scan heartbeat is sent, once the budget is spent."""
        image = await media.create_image()
        await media.trash("images", image["id"])
        steps = []

        async def heartbeat(step):
            steps.append(step)

        await run(store, max_operations=1, heartbeat=heartbeat)

        assert steps == ["trash_swept"]

    async def test_preserved_candidates_do_not_starve_orphans(self, media, session):
        """Test that kept candidates do not hide orphans listed after them."""
        tag = await media.create_tag()
        for _ in range(5):
            await media.create_image(hours_ago=48, tags=[tag["id"]])
        orphan = await media.create_image(hours_ago=48)
        store = SqlAlchemyDocumentStore(session)

        result = await MediaCleanupJob(store, CleanupConfig(page_size=2)).run(max_operations=2)

        assert result.skipped_images == 5
        assert result.trashed_images == 1
        assert await media.in_trash("images", orphan["id"])

    async def test_idempotence(self, media, store):
        """Test that repeated runs make no new changes."""
        await media.create_file(hours_ago=48)
        await media.create_image(hours_ago=48)
        referenced = await media.create_image(hours_ago=48)
        await store.create("meditations", {"title": "Calm", "thumbnail": referenced["id"]})

        first = await run(store)
        second = await run(store)
        third = await run(store)

        assert first.trashed_files == 1
        assert first.trashed_images == 1
        assert second.trashed_files == second.trashed_images == 0
        assert second.permanently_deleted_files == 1
        assert second.permanently_deleted_images == 1
        assert third.total_operations == 0
        assert await media.is_live("images", referenced["id"])

    async def test_trash_monotonicity(self, media, session):
        """Test that trashed media never comes back to life."""
        trashed_ids = []
        for _ in range(6):
            file = await media.create_file()
            await media.trash("files", file["id"])
            trashed_ids.append(file["id"])
        store = FlakyStore(session, failing_ids={trashed_ids[0]})

        await run(store, max_operations=4)

        for file_id in trashed_ids:
            assert await media.is_gone("files", file_id) or await media.in_trash("files", file_id)

    async def test_negative_arguments(self, store):
        """Test that a negative budget or grace period is rejected."""
        with pytest.raises(ConfigurationError):
            await run(store, max_operations=-1)
        with pytest.raises(ConfigurationError):
            await run(store, grace_period_hours=-1)


class TestFailures:
    """Per-item failures are counted; query failures abort the run."""

    async def test_failed_permanent_delete_is_counted(self, media, session):
        """Test that a failed permanent delete is counted and skipped."""
        first = await media.create_file()
        second = await media.create_file()
        await media.trash("files", first["id"])
        await media.trash("files", second["id"])
        store = FlakyStore(session, failing_ids={first["id"]})

        result = await run(store)

        assert result.errors == 1
        assert result.permanently_deleted_files == 1
        assert await media.in_trash("files", first["id"])
        assert await media.is_gone("files", second["id"])

    async def test_failed_soft_delete_is_counted(self, media, session, log_records):
        """Test that a failed soft delete is counted and logged."""
        stuck = await media.create_image(hours_ago=48)
        orphan = await media.create_image(hours_ago=48)
        store = FlakyStore(session, failing_ids={stuck["id"]})

        result = await run(store)

        assert result.errors == 1
        assert result.trashed_images == 1
        assert await media.is_live("images", stuck["id"])
        assert await media.in_trash("images", orphan["id"])
        (failure,) = [r for r in log_records if r["message"] == "Failed to trash orphaned image"]
        assert failure["extra"]["asset_id"] == stuck["id"]
        assert failure["extra"]["error"] == "disk full"

    async def test_query_failure_aborts_run(self, media, session, log_records):
        """Test that a failed query aborts the run and is logged."""
        trashed = await media.create_file()
        await media.trash("files", trashed["id"])
        orphan = await media.create_file(hours_ago=48)
        store = FlakyStore(session, failing_collection="pages")

        with pytest.raises(StoreError, match="pages"):
            await run(store)

        assert await media.is_gone("files", trashed["id"])
        assert await media.is_live("files", orphan["id"])
        (error,) = [r for r in log_records if r["message"] == "Error during orphaned media cleanup"]
        assert error["level"].name == "ERROR"
        assert error["extra"]["permanently_deleted_files"] == 1


class TestDryRun:
    """Dry runs classify without mutating."""

    async def test_nothing_changes(self, media, session):
        """Test that a dry run counts candidates without mutating them."""
        trashed = await media.create_file()
        await media.trash("files", trashed["id"])
        orphan = await media.create_image(hours_ago=48)
        store = CountingStore(session)

        result = await run(store, dry_run=True)

        assert result.permanently_deleted_files == 1
        assert result.trashed_images == 1
        assert store.mutations == 0
        assert await media.in_trash("files", trashed["id"])
        assert await media.is_live("images", orphan["id"])

    async def test_config_default(self, media, store):
        """Test that dry run can be enabled from configuration."""
        orphan = await media.create_file(hours_ago=48)

        result = await MediaCleanupJob(store, CleanupConfig(dry_run=True)).run()

        assert result.trashed_files == 1
        assert await media.is_live("files", orphan["id"])
