"""Tests for FileService: uploads, listings, ownership, share, star, trash and delete."""
import uuid

import pytest

from cloud_drive.errors import BadRequestError, ForbiddenError, NotFoundError, StorageError
from cloud_drive.models.file_record import FOLDER_TYPE
from cloud_drive.services.cache import files_cache_key
from cloud_drive.services.file_filters import build_file_filter
from cloud_drive.services.file_records import FileRecordStore
from cloud_drive.services.file_service import FileService
from cloud_drive.services.object_storage import LocalObjectStorage, ObjectStorage

OWNER = uuid.uuid4()
STRANGER = uuid.uuid4()


class BrokenStorage(ObjectStorage):
    """Storage whose every call fails."""

    async def upload(self, data, file_name, content_type=None):
        raise StorageError("bucket unreachable")

    async def delete(self, object_id):
        raise StorageError("bucket unreachable")


class UndeletableStorage(LocalObjectStorage):
    """Uploads work, deletes fail."""

    async def delete(self, object_id):
        raise StorageError("delete denied")


def make_service(db_session, storage, cache, **kwargs):
    return FileService(FileRecordStore(db_session), storage, cache, frontend_url="http://frontend.test", **kwargs)


async def upload(service, name="report.pdf", size=2048, folder_id=None, owner=OWNER):
    return await service.upload_file(owner, b"x" * size, name, "application/pdf", folder_id)


@pytest.mark.asyncio
class TestUpload:
    async def test_upload_to_root(self, file_service, storage):
        record = await upload(file_service)

        assert record.name == "report.pdf"
        assert record.size == 2048
        assert record.type == "application/pdf"
        assert record.folder == "root"
        assert record.owner_id == OWNER
        assert record.is_starred is False
        assert record.is_trashed is False
        assert record.url == f"http://test/uploads/{record.object_id}"
        assert (storage.base_path / record.object_id).read_bytes() == b"x" * 2048

    async def test_upload_into_folder(self, file_service):
        folder = await file_service.create_folder(OWNER, "Work")
        record = await upload(file_service, folder_id=str(folder.id))
        assert record.folder == str(folder.id)

    async def test_upload_into_view_lands_at_root(self, file_service):
        record = await upload(file_service, folder_id="images")
        assert record.folder == "root"

    async def test_upload_into_unknown_folder(self, file_service, storage):
        with pytest.raises(NotFoundError, match="Folder not found"):
            await upload(file_service, folder_id=str(uuid.uuid4()))
        assert list(storage.base_path.iterdir()) == []

    async def test_upload_into_someone_elses_folder(self, file_service):
        folder = await file_service.create_folder(STRANGER, "Theirs")
        with pytest.raises(NotFoundError):
            await upload(file_service, folder_id=str(folder.id))

    async def test_missing_file(self, file_service):
        with pytest.raises(BadRequestError, match="No file uploaded"):
            await file_service.upload_file(OWNER, None, None)

    async def test_too_large(self, db_session, storage, cache):
        service = make_service(db_session, storage, cache, max_upload_bytes=10)
        with pytest.raises(BadRequestError, match="File too large"):
            await upload(service, size=11)

    async def test_size_check_before_reading(self, db_session, storage, cache):
        service = make_service(db_session, storage, cache, max_upload_bytes=10)
        service.check_upload_size(10)
        service.check_upload_size(None)
        with pytest.raises(BadRequestError, match="File too large"):
            service.check_upload_size(11)

    async def test_storage_failure_creates_no_record(self, db_session, cache):
        service = make_service(db_session, BrokenStorage(), cache)

        with pytest.raises(StorageError, match="Upload failed"):
            await upload(service)

        assert await service.store.count(build_file_filter(OWNER)) == 0


@pytest.mark.asyncio
class TestListFiles:
    async def test_pagination(self, file_service):
        for i in range(5):
            await upload(file_service, name=f"file{i}.txt")

        page = await file_service.list_files(OWNER, page=2, limit=2, sort_by="name", order="asc")

        assert [f["name"] for f in page["files"]] == ["file2.txt", "file3.txt"]
        assert page["count"] == 2
        assert page["totalFiles"] == 5
        assert page["currentPage"] == 2
        assert page["totalPages"] == 3

    async def test_empty_listing(self, file_service):
        page = await file_service.list_files(OWNER)
        assert page == {"files": [], "count": 0, "totalFiles": 0, "currentPage": 1, "totalPages": 0}

    async def test_files_are_camel_cased(self, file_service):
        await upload(file_service)
        entry = (await file_service.list_files(OWNER))["files"][0]
        assert {"id", "name", "objectId", "ownerId", "isStarred", "isTrashed", "createdAt"} <= set(entry)

    async def test_unknown_sort_field(self, file_service):
        with pytest.raises(BadRequestError):
            await file_service.list_files(OWNER, sort_by="password")

    async def test_listing_is_scoped_to_owner(self, file_service):
        await upload(file_service, owner=STRANGER)
        assert (await file_service.list_files(OWNER))["totalFiles"] == 0

    async def test_views(self, file_service):
        kept = await upload(file_service, name="kept.txt")
        starred = await upload(file_service, name="starred.txt")
        trashed = await upload(file_service, name="trashed.txt")
        await file_service.toggle_star(OWNER, starred.id)
        await file_service.move_to_trash(OWNER, trashed.id)

        def names(page):
            return sorted(f["name"] for f in page["files"])

        assert names(await file_service.list_files(OWNER)) == ["kept.txt", "starred.txt"]
        assert names(await file_service.list_files(OWNER, folder="starred")) == ["starred.txt"]
        assert names(await file_service.list_files(OWNER, folder="trash")) == ["trashed.txt"]
        assert names(await file_service.list_files(OWNER, search="KEPT")) == ["kept.txt"]
        assert kept.is_trashed is False

    async def test_result_is_cached(self, file_service, redis_double):
        await upload(file_service)
        first = await file_service.list_files(OWNER)

        key = files_cache_key(OWNER, 1, 10, "createdAt", "desc")
        assert key in redis_double.store
        assert 0 < await redis_double.ttl(key) <= 300

        # A record written behind the service's back is not seen until invalidation
        await file_service.store.create(
            name="sneaky.txt", type="text/plain", size=1, url="http://x",
            object_id="sneaky", owner_id=OWNER, folder="root",
        )
        assert await file_service.list_files(OWNER) == first

        await upload(file_service, name="second.txt")
        assert (await file_service.list_files(OWNER))["totalFiles"] == 3

    async def test_mutations_invalidate_only_that_owner(self, file_service, cache, redis_double):
        record = await upload(file_service)
        await file_service.list_files(OWNER)
        other_key = files_cache_key(STRANGER, 1, 10, "createdAt", "desc")
        await cache.set(other_key, {"files": []}, 300)

        await file_service.toggle_star(OWNER, record.id)

        assert not any(k.startswith(f"files:{OWNER}:") for k in redis_double.store)
        assert other_key in redis_double.store

    async def test_works_without_cache(self, db_session, storage, broken_cache):
        service = make_service(db_session, storage, broken_cache)
        await upload(service)
        assert (await service.list_files(OWNER))["totalFiles"] == 1

    async def test_non_payload_cache_entry_is_a_miss(self, file_service, redis_double):
        await upload(file_service)
        await redis_double.setex(files_cache_key(OWNER, 1, 10, "createdAt", "desc"), 300, "not json")

        page = await file_service.list_files(OWNER)

        assert page["totalFiles"] == 1
        assert isinstance(await file_service.cache.get(files_cache_key(OWNER, 1, 10, "createdAt", "desc")), dict)

    async def test_folder_spellings_share_one_cache_entry(self, file_service, redis_double):
        folder = await file_service.create_folder(OWNER, "Work")
        await file_service.list_files(OWNER, folder=str(folder.id).upper())

        assert files_cache_key(OWNER, 1, 10, "createdAt", "desc", str(folder.id)) in redis_double.store


@pytest.mark.asyncio
class TestOwnership:
    async def test_stranger_is_forbidden_and_nothing_changes(self, file_service):
        record = await upload(file_service)

        for operation in (
            file_service.toggle_star,
            file_service.move_to_trash,
            file_service.share_file,
            file_service.delete_file,
            file_service.get_file,
        ):
            with pytest.raises(ForbiddenError, match="Not authorized"):
                await operation(STRANGER, record.id)

        fresh = await file_service.store.get(record.id)
        assert fresh is not None
        assert fresh.is_starred is False
        assert fresh.is_trashed is False
        assert fresh.is_shared is False
        assert fresh.share_id is None

    async def test_missing_record(self, file_service):
        with pytest.raises(NotFoundError, match="File not found"):
            await file_service.get_file(OWNER, uuid.uuid4())

    async def test_malformed_id_is_not_found(self, file_service):
        with pytest.raises(NotFoundError):
            await file_service.get_file(OWNER, "not-a-uuid")


@pytest.mark.asyncio
class TestFolders:
    async def test_create_folder(self, file_service):
        folder = await file_service.create_folder(OWNER, "  Work  ")
        assert folder.name == "Work"
        assert folder.type == FOLDER_TYPE
        assert folder.size == 0
        assert folder.url == "#"
        assert folder.folder == "root"
        assert folder.object_id.startswith("folder_")

    async def test_blank_name(self, file_service):
        with pytest.raises(BadRequestError, match="Folder name required"):
            await file_service.create_folder(OWNER, "   ")

    async def test_duplicate_name(self, file_service):
        await file_service.create_folder(OWNER, "Work")
        with pytest.raises(BadRequestError, match="Folder already exists"):
            await file_service.create_folder(OWNER, "Work")

    async def test_same_name_for_different_owners(self, file_service):
        await file_service.create_folder(OWNER, "Work")
        await file_service.create_folder(STRANGER, "Work")


@pytest.mark.asyncio
class TestStarAndTrash:
    async def test_toggle_star(self, file_service):
        record = await upload(file_service)
        assert (await file_service.toggle_star(OWNER, record.id)).is_starred is True
        assert (await file_service.toggle_star(OWNER, record.id)).is_starred is False

    async def test_trash_and_restore(self, file_service):
        record = await upload(file_service)

        trashed = await file_service.move_to_trash(OWNER, record.id)
        assert trashed.is_trashed is True
        assert trashed.trashed_at is not None

        restored = await file_service.restore_from_trash(OWNER, record.id)
        assert restored.is_trashed is False
        assert restored.trashed_at is None
        assert restored.folder == "root"

    async def test_restore_when_not_trashed(self, file_service):
        record = await upload(file_service)
        with pytest.raises(BadRequestError, match="File is not in trash"):
            await file_service.restore_from_trash(OWNER, record.id)

    async def test_trashed_starred_file_only_shows_in_trash(self, file_service):
        record = await upload(file_service)
        await file_service.toggle_star(OWNER, record.id)
        await file_service.move_to_trash(OWNER, record.id)

        assert (await file_service.list_files(OWNER, folder="starred"))["totalFiles"] == 0
        assert (await file_service.list_files(OWNER, folder="trash"))["totalFiles"] == 1


@pytest.mark.asyncio
class TestSharing:
    async def test_share_and_resolve(self, file_service):
        record = await upload(file_service)

        share = await file_service.share_file(OWNER, record.id)

        assert len(share["shareId"]) == 16
        assert share["shareLink"] == f"http://frontend.test/shared/{share['shareId']}"
        shared = await file_service.get_shared_file(share["shareId"])
        assert shared.id == record.id
        assert shared.is_shared is True

    async def test_resharing_rotates_the_token(self, file_service):
        record = await upload(file_service)
        first = await file_service.share_file(OWNER, record.id)
        second = await file_service.share_file(OWNER, record.id)

        assert first["shareId"] != second["shareId"]
        with pytest.raises(NotFoundError):
            await file_service.get_shared_file(first["shareId"])

    async def test_unshare_revokes(self, file_service):
        record = await upload(file_service)
        share = await file_service.share_file(OWNER, record.id)

        unshared = await file_service.unshare_file(OWNER, record.id)

        assert unshared.is_shared is False
        assert unshared.share_id is None
        with pytest.raises(NotFoundError, match="Shared file not found"):
            await file_service.get_shared_file(share["shareId"])

    async def test_unknown_share_id(self, file_service):
        with pytest.raises(NotFoundError, match="Shared file not found"):
            await file_service.get_shared_file("0123456789abcdef")


@pytest.mark.asyncio
class TestDelete:
    async def _nested_tree(self, service):
        """Work/ -> report.pdf, Nested/ -> deep.txt"""
        work = await service.create_folder(OWNER, "Work")
        report = await upload(service, folder_id=str(work.id))
        nested = await service.store.create(
            name="Nested", type=FOLDER_TYPE, size=0, url="#",
            object_id="folder_nested1", owner_id=OWNER, folder=str(work.id),
        )
        deep = await upload(service, name="deep.txt", folder_id=str(nested.id))
        return work, report, nested, deep

    async def test_delete_file_removes_record_and_blob(self, file_service, storage):
        record = await upload(file_service)

        deleted, outcome = await file_service.delete_file(OWNER, record.id)

        assert deleted.id == record.id
        assert outcome.to_dict() == {"recordDeleted": True, "blobDeleted": True, "childrenDeleted": 0}
        assert await file_service.store.get(record.id) is None
        assert not (storage.base_path / record.object_id).exists()

    async def test_delete_folder_removes_direct_children(self, file_service):
        work, report, nested, deep = await self._nested_tree(file_service)

        _, outcome = await file_service.delete_file(OWNER, work.id)

        assert outcome.children_deleted == 2
        assert await file_service.store.get(work.id) is None
        assert await file_service.store.get(report.id) is None
        assert await file_service.store.get(nested.id) is None
        # One level only: the grandchild survives
        assert await file_service.store.get(deep.id) is not None

    async def test_delete_folder_with_deeper_recursion(self, db_session, storage, cache):
        service = make_service(db_session, storage, cache, folder_delete_depth=2)
        work, report, nested, deep = await self._nested_tree(service)

        _, outcome = await service.delete_file(OWNER, work.id)

        assert outcome.children_deleted == 3
        assert await service.store.get(deep.id) is None

    async def test_storage_failure_still_deletes_metadata(self, db_session, tmp_path, cache):
        service = make_service(db_session, UndeletableStorage(tmp_path / "objs", "http://test/uploads"), cache)
        record = await upload(service)

        _, outcome = await service.delete_file(OWNER, record.id)

        assert outcome.record_deleted is True
        assert outcome.blob_deleted is False
        assert outcome.failed_objects == [record.object_id]
        assert await service.store.get(record.id) is None

    async def test_missing_blob_is_reported(self, file_service, storage):
        record = await upload(file_service)
        (storage.base_path / record.object_id).unlink()

        _, outcome = await file_service.permanent_delete(OWNER, record.id)

        assert outcome.record_deleted is True
        assert outcome.blob_deleted is False

    async def test_folder_placeholder_never_hits_storage(self, db_session, cache):
        service = make_service(db_session, BrokenStorage(), cache)
        folder = await service.create_folder(OWNER, "Empty")

        _, outcome = await service.delete_file(OWNER, folder.id)

        assert outcome.blob_deleted is True
