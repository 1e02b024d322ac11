"""
Tests for the Firestore document store against a mocked AsyncClient.
"""

import pytest
from contextlib import ExitStack
from unittest.mock import AsyncMock, MagicMock, patch

from google.api_core import exceptions as gcp_exceptions
from tenacity import wait_none

from coursehub.core.engine import firestore_store
from coursehub.core.engine.firestore_store import FirestoreCollection, FirestoreDocumentStore
from coursehub.core.exceptions import DuplicateKeyError, ErrorCategory, ErrorCode, StorageError


def _snapshot(doc_id, data, exists=True):
    snap = MagicMock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = data
    snap.get.side_effect = lambda key: data[key]
    snap.reference = MagicMock(name=f"ref:{doc_id}")
    return snap


async def _stream(*snapshots):
    for snap in snapshots:
        yield snap


@pytest.fixture()
def client():
    """AsyncClient mock that hands back the same ref for the same path."""
    client = MagicMock()
    collections = {}

    def collection(name):
        if name not in collections:
            col = MagicMock(name=f"collection:{name}")
            docs = {}

            def document(doc_id):
                if doc_id not in docs:
                    ref = MagicMock(name=f"{name}/{doc_id}")
                    ref.get = AsyncMock(return_value=_snapshot(doc_id, None, exists=False))
                    ref.delete = AsyncMock()
                    ref.update = AsyncMock()
                    docs[doc_id] = ref
                return docs[doc_id]

            col.document.side_effect = document
            collections[name] = col
        return collections[name]

    client.collection.side_effect = collection
    batch = MagicMock()
    batch.commit = AsyncMock()
    client.batch.return_value = batch
    return client


@pytest.fixture()
def store(client):
    return FirestoreDocumentStore(client)


@pytest.fixture(autouse=True)
def no_retry_wait():
    """Retry immediately so transient-error tests don't sleep."""
    retried = (
        firestore_store._get,
        firestore_store._commit,
        FirestoreCollection.find_by_id,
        FirestoreCollection.update_by_id,
    )
    with ExitStack() as stack:
        for fn in retried:
            stack.enter_context(patch.object(fn.retry, "wait", wait_none()))
        yield


class TestFindById:
    @pytest.mark.asyncio
    async def test_existing_document(self, client, store):
        client.collection("modules").document("m1").get.return_value = _snapshot("m1", {"title": "Basics"})

        doc = await store.collection("modules").find_by_id("m1")
        assert doc == {"id": "m1", "title": "Basics"}

    @pytest.mark.asyncio
    async def test_missing_document(self, store):
        assert await store.collection("modules").find_by_id("nope") is None


class TestFind:
    @pytest.mark.asyncio
    async def test_id_conditions_filtered_client_side(self, client, store):
        col = client.collection("courses")
        col.where.return_value.stream.return_value = _stream(_snapshot("c1", {"slug": "python"}))

        rows = await store.collection("courses").find({"slug": "python", "id": {"$ne": "c1"}})

        assert rows == []
        field_filter = col.where.call_args.kwargs["filter"]
        assert (field_filter.field_path, field_filter.op_string, field_filter.value) == ("slug", "==", "python")


class TestInsertOne:
    @pytest.mark.asyncio
    async def test_reservation_created_with_document(self, client, store):
        courses = store.collection("courses", unique_fields=("slug",))

        doc_id = await courses.insert_one({"id": "c1", "slug": "python", "title": "Python"})

        assert doc_id == "c1"
        batch = client.batch.return_value
        assert batch.create.call_count == 2
        reservation_call = batch.create.call_args_list[0]
        assert reservation_call.args[0] is client.collection("courses__unique_slug").document("python")
        assert reservation_call.args[1] == {"document_id": "c1"}
        batch.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_taken_slug_raises_duplicate_key(self, client, store):
        courses = store.collection("courses", unique_fields=("slug",))
        client.batch.return_value.commit.side_effect = gcp_exceptions.AlreadyExists("exists")
        client.collection("courses__unique_slug").document("python").get.return_value = _snapshot(
            "python", {"document_id": "other"}
        )

        with pytest.raises(DuplicateKeyError) as exc_info:
            await courses.insert_one({"id": "c2", "slug": "python"})
        assert exc_info.value.field == "slug"
        assert exc_info.value.value == "python"


class TestDeleteById:
    @pytest.mark.asyncio
    async def test_delete_uses_exists_precondition(self, client, store):
        must_exist = client.write_option.return_value

        assert await store.collection("lessons").delete_by_id("l1") is True
        client.write_option.assert_called_with(exists=True)
        client.collection("lessons").document("l1").delete.assert_awaited_once_with(option=must_exist)

    @pytest.mark.asyncio
    async def test_already_gone_returns_false(self, client, store):
        client.collection("lessons").document("l1").delete.side_effect = gcp_exceptions.NotFound("gone")

        assert await store.collection("lessons").delete_by_id("l1") is False

    @pytest.mark.asyncio
    async def test_unique_reservations_released(self, client, store):
        courses = store.collection("courses", unique_fields=("slug",))
        client.collection("courses").document("c1").get.return_value = _snapshot("c1", {"slug": "python"})

        assert await courses.delete_by_id("c1") is True
        batch = client.batch.return_value
        deleted = [c.args[0] for c in batch.delete.call_args_list]
        assert client.collection("courses__unique_slug").document("python") in deleted

    @pytest.mark.asyncio
    async def test_unique_collection_missing_document(self, store):
        courses = store.collection("courses", unique_fields=("slug",))
        assert await courses.delete_by_id("nope") is False


class TestDeleteMany:
    @pytest.mark.asyncio
    async def test_deletes_streamed_matches(self, client, store):
        col = client.collection("lessons")
        col.where.return_value.stream.return_value = _stream(
            _snapshot("l1", {"module": "m1"}),
            _snapshot("l2", {"module": "m1"}),
        )

        deleted = await store.collection("lessons").delete_many({"module": "m1"})

        assert deleted == 2
        batch = client.batch.return_value
        assert batch.delete.call_count == 2
        batch.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_matched(self, client, store):
        client.collection("lessons").where.return_value.stream.return_value = _stream()

        assert await store.collection("lessons").delete_many({"module": "m1"}) == 0
        client.batch.return_value.commit.assert_not_awaited()


class TestStore:
    def test_collection_is_reused(self, store):
        assert store.collection("courses") is store.collection("courses")


class TestUpdateById:
    @pytest.mark.asyncio
    async def test_slug_change_swaps_reservations_in_one_batch(self, client, store):
        courses = store.collection("courses", unique_fields=("slug",))
        doc_ref = client.collection("courses").document("c1")
        doc_ref.get.return_value = _snapshot("c1", {"slug": "python", "title": "Python"})

        assert await courses.update_by_id("c1", {"slug": "py-3", "title": "Python 3"}) is True

        batch = client.batch.return_value
        reservations = client.collection("courses__unique_slug")
        batch.create.assert_called_once_with(reservations.document("py-3"), {"document_id": "c1"})
        batch.delete.assert_called_once_with(reservations.document("python"))
        batch.update.assert_called_once_with(doc_ref, {"slug": "py-3", "title": "Python 3"})
        batch.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_taken_slug_raises_duplicate_key(self, client, store):
        courses = store.collection("courses", unique_fields=("slug",))
        client.collection("courses").document("c1").get.return_value = _snapshot("c1", {"slug": "python"})
        client.batch.return_value.commit.side_effect = gcp_exceptions.AlreadyExists("exists")
        client.collection("courses__unique_slug").document("py-3").get.return_value = _snapshot(
            "py-3", {"document_id": "other"}
        )

        with pytest.raises(DuplicateKeyError) as exc_info:
            await courses.update_by_id("c1", {"slug": "py-3"})
        assert exc_info.value.field == "slug"
        assert exc_info.value.value == "py-3"

    @pytest.mark.asyncio
    async def test_missing_document_returns_false(self, client, store):
        courses = store.collection("courses", unique_fields=("slug",))

        assert await courses.update_by_id("nope", {"slug": "py-3"}) is False
        client.batch.return_value.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_document_without_unique_fields(self, client, store):
        client.collection("modules").document("m1").update.side_effect = gcp_exceptions.NotFound("gone")

        assert await store.collection("modules").update_by_id("m1", {"title": "New"}) is False

    @pytest.mark.asyncio
    async def test_repeat_after_lost_response_only_reapplies_fields(self, client, store):
        courses = store.collection("courses", unique_fields=("slug",))
        client.collection("courses").document("c1").get.side_effect = [
            _snapshot("c1", {"slug": "python"}),
            _snapshot("c1", {"slug": "py-3"}),
        ]
        batch = client.batch.return_value
        batch.commit.side_effect = [gcp_exceptions.DeadlineExceeded("lost"), None]

        assert await courses.update_by_id("c1", {"slug": "py-3"}) is True
        # The second attempt sees the reservation already moved
        assert batch.create.call_count == 1
        assert batch.delete.call_count == 1
        assert batch.update.call_count == 2
        assert batch.commit.await_count == 2


class TestTransientErrors:
    @pytest.mark.asyncio
    async def test_create_repeated_after_lost_response_keeps_its_id(self, client, store):
        courses = store.collection("courses", unique_fields=("slug",))
        batch = client.batch.return_value
        # The first commit landed but its response was lost
        batch.commit.side_effect = [gcp_exceptions.DeadlineExceeded("lost"), gcp_exceptions.AlreadyExists("exists")]
        client.collection("courses__unique_slug").document("python").get.return_value = _snapshot(
            "python", {"document_id": "c1"}
        )
        client.collection("courses").document("c1").get.return_value = _snapshot(
            "c1", {"slug": "python", "title": "Python"}
        )

        with patch.object(firestore_store, "new_document_id", return_value="c1") as minted:
            doc_id = await courses.insert_one({"slug": "python", "title": "Python"})

        assert doc_id == "c1"
        minted.assert_called_once()
        assert batch.commit.await_count == 2
        reserved_for = {c.args[1]["document_id"] for c in batch.create.call_args_list if "document_id" in c.args[1]}
        assert reserved_for == {"c1"}

    @pytest.mark.asyncio
    async def test_create_colliding_with_different_document_is_duplicate(self, client, store):
        courses = store.collection("courses", unique_fields=("slug",))
        client.batch.return_value.commit.side_effect = gcp_exceptions.AlreadyExists("exists")
        client.collection("courses__unique_slug").document("python").get.return_value = _snapshot(
            "python", {"document_id": "c1"}
        )
        client.collection("courses").document("c1").get.return_value = _snapshot(
            "c1", {"slug": "python", "title": "Someone else's"}
        )

        with pytest.raises(DuplicateKeyError) as exc_info:
            await courses.insert_one({"id": "c1", "slug": "python", "title": "Python"})
        assert exc_info.value.field == "id"

    @pytest.mark.asyncio
    async def test_delete_is_not_repeated(self, client, store):
        doc_ref = client.collection("lessons").document("l1")
        doc_ref.delete.side_effect = gcp_exceptions.DeadlineExceeded("lost")

        with pytest.raises(StorageError) as exc_info:
            await store.collection("lessons").delete_by_id("l1")

        assert exc_info.value.category == ErrorCategory.TRANSIENT
        doc_ref.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_many_keeps_count_across_retried_commit(self, client, store):
        client.collection("lessons").where.return_value.stream.return_value = _stream(
            _snapshot("l1", {"module": "m1"}),
            _snapshot("l2", {"module": "m1"}),
        )
        batch = client.batch.return_value
        batch.commit.side_effect = [gcp_exceptions.ServiceUnavailable("busy"), None]

        assert await store.collection("lessons").delete_many({"module": "m1"}) == 2
        assert batch.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_read_gives_up_with_storage_error(self, client, store):
        doc_ref = client.collection("modules").document("m1")
        doc_ref.get.side_effect = gcp_exceptions.ServiceUnavailable("down")

        with pytest.raises(StorageError) as exc_info:
            await store.collection("modules").find_by_id("m1")

        assert exc_info.value.category == ErrorCategory.TRANSIENT
        assert exc_info.value.error_code == ErrorCode.STORAGE_UNAVAILABLE
        assert doc_ref.get.await_count == 3
