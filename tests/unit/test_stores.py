"""Unit tests for the datastores — MemoryStore and SQLiteStore share one suite.

Every test in the ``TestDocuments`` / ``TestChunks`` / ``TestSimilarity`` /
``TestChat`` classes runs against both backends, so the in-memory store
stays a faithful stand-in for SQLite.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from mindmesh.models.chat import ChatMessage, ChatSession, MessageRole
from mindmesh.models.document import Document, DocumentStatus, utc_now
from mindmesh.providers.store.memory_store import MemoryStore
from mindmesh.providers.store.sqlite_store import SQLiteStore
from mindmesh.utils.errors import DuplicateDocumentError, NotFoundError

# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    if request.param == "memory":
        backend = MemoryStore()
    else:
        backend = SQLiteStore(db_path=tmp_path / "nested" / "test.db")
    await backend.initialize()
    return backend


def _make_document(owner_id: str = "alice", content_hash: str = "h1", **overrides) -> Document:
    fields = {
        "owner_id": owner_id,
        "filename": "notes.txt",
        "content_hash": content_hash,
        "content_type": "text/plain",
        "size_bytes": 42,
    }
    fields.update(overrides)
    return Document(**fields)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    @pytest.mark.asyncio()
    async def test_insert_and_get(self, store) -> None:
        document = await store.insert_document(_make_document())

        fetched = await store.get_document(document.id)

        assert fetched is not None
        assert fetched.id == document.id
        assert fetched.status is DocumentStatus.PENDING
        assert fetched.size_bytes == 42

    @pytest.mark.asyncio()
    async def test_get_unknown_returns_none(self, store) -> None:
        assert await store.get_document("missing") is None

    @pytest.mark.asyncio()
    async def test_same_owner_same_hash_rejected(self, store) -> None:
        await store.insert_document(_make_document())
        with pytest.raises(DuplicateDocumentError):
            await store.insert_document(_make_document())

    @pytest.mark.asyncio()
    async def test_same_hash_other_owner_allowed(self, store) -> None:
        await store.insert_document(_make_document("alice"))
        await store.insert_document(_make_document("bob"))

        assert await store.find_document_by_hash("bob", "h1") is not None

    @pytest.mark.asyncio()
    async def test_update_persists_status(self, store) -> None:
        document = await store.insert_document(_make_document())
        processing = document.with_status(DocumentStatus.PROCESSING, extracted_text="text")

        await store.update_document(processing)
        fetched = await store.get_document(document.id)

        assert fetched.status is DocumentStatus.PROCESSING
        assert fetched.extracted_text == "text"

    @pytest.mark.asyncio()
    async def test_update_unknown_raises(self, store) -> None:
        with pytest.raises(NotFoundError):
            await store.update_document(_make_document())

    @pytest.mark.asyncio()
    async def test_list_is_owner_scoped_newest_first(self, store) -> None:
        base = utc_now()
        older = await store.insert_document(_make_document(content_hash="a", created_at=base))
        newer = await store.insert_document(
            _make_document(content_hash="b", created_at=base + timedelta(seconds=5))
        )
        await store.insert_document(_make_document("bob", content_hash="c"))

        listed = await store.list_documents("alice")

        assert [d.id for d in listed] == [newer.id, older.id]

    @pytest.mark.asyncio()
    async def test_delete_cascades_and_frees_hash(self, store, chunk_factory) -> None:
        document = await store.insert_document(_make_document())
        await store.add_chunks([chunk_factory(document.id, 0, [1.0, 0.0])])

        assert await store.delete_document(document.id) is True
        assert await store.count_chunks(document.id) == 0
        assert await store.delete_document(document.id) is False
        await store.insert_document(_make_document())


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------


class TestChunks:
    @pytest.mark.asyncio()
    async def test_chunks_round_trip_in_index_order(self, store, chunk_factory) -> None:
        document = await store.insert_document(_make_document())
        chunks = [
            chunk_factory(document.id, 1, [0.0, 1.0], metadata={"keywords": ["b"]}),
            chunk_factory(document.id, 0, [1.0, 0.0], metadata={"keywords": ["a"]}),
        ]

        assert await store.add_chunks(chunks) == 2
        stored = await store.get_chunks(document.id)

        assert [c.chunk_index for c in stored] == [0, 1]
        assert stored[0].embedding == [1.0, 0.0]
        assert stored[0].metadata == {"keywords": ["a"]}
        assert await store.count_chunks(document.id) == 2

    @pytest.mark.asyncio()
    async def test_delete_chunks_returns_count(self, store, chunk_factory) -> None:
        document = await store.insert_document(_make_document())
        await store.add_chunks([chunk_factory(document.id, i, [1.0, 0.0]) for i in range(3)])

        assert await store.delete_chunks(document.id) == 3
        assert await store.get_chunks(document.id) == []


# ---------------------------------------------------------------------------
# Nearest-neighbour search
# ---------------------------------------------------------------------------


class TestSimilarity:
    @pytest.mark.asyncio()
    async def test_ranked_by_cosine_distance(self, store, chunk_factory) -> None:
        document = await store.insert_document(_make_document())
        exact = chunk_factory(document.id, 0, [1.0, 0.0])
        close = chunk_factory(document.id, 1, [0.9, 0.1])
        far = chunk_factory(document.id, 2, [-1.0, 0.0])
        await store.add_chunks([far, exact, close])

        results = await store.find_similar([1.0, 0.0], "alice", None, 10)

        assert [r.id for r in results] == [exact.id, close.id, far.id]
        assert results[0].distance == pytest.approx(0.0)
        assert results[2].distance == pytest.approx(2.0)

    @pytest.mark.asyncio()
    async def test_other_owners_never_returned(self, store, chunk_factory) -> None:
        mine = await store.insert_document(_make_document("alice"))
        theirs = await store.insert_document(_make_document("bob"))
        await store.add_chunks([chunk_factory(mine.id, 0, [0.0, 1.0])])
        await store.add_chunks([chunk_factory(theirs.id, 0, [1.0, 0.0])])

        results = await store.find_similar([1.0, 0.0], "alice", None, 10)

        assert {r.document_id for r in results} == {mine.id}

    @pytest.mark.asyncio()
    async def test_limit_is_respected(self, store, chunk_factory) -> None:
        document = await store.insert_document(_make_document())
        await store.add_chunks([chunk_factory(document.id, i, [1.0, float(i)]) for i in range(6)])

        assert len(await store.find_similar([1.0, 0.0], "alice", None, 4)) == 4

    @pytest.mark.asyncio()
    async def test_metadata_filter_containment(self, store, chunk_factory) -> None:
        document = await store.insert_document(_make_document())
        report = chunk_factory(document.id, 0, [1.0, 0.0], metadata={"document_type": "report", "keywords": ["q3", "sales"]})
        memo = chunk_factory(document.id, 1, [1.0, 0.0], metadata={"document_type": "memo", "keywords": ["q3"]})
        await store.add_chunks([report, memo])

        by_type = await store.find_similar([1.0, 0.0], "alice", {"document_type": "report"}, 10)
        by_keyword = await store.find_similar([1.0, 0.0], "alice", {"keywords": ["q3"]}, 10)

        assert [r.id for r in by_type] == [report.id]
        assert {r.id for r in by_keyword} == {report.id, memo.id}

    @pytest.mark.asyncio()
    async def test_ties_broken_by_chunk_id(self, store, chunk_factory) -> None:
        document = await store.insert_document(_make_document())
        chunks = [chunk_factory(document.id, i, [0.5, 0.5]) for i in range(3)]
        await store.add_chunks(chunks)

        results = await store.find_similar([0.5, 0.5], "alice", None, 10)

        assert [r.id for r in results] == sorted(c.id for c in chunks)


# ---------------------------------------------------------------------------
# Sessions & messages
# ---------------------------------------------------------------------------


class TestChat:
    @pytest.mark.asyncio()
    async def test_messages_kept_in_order(self, store) -> None:
        session = await store.create_session(ChatSession(owner_id="alice"))
        first = await store.add_message(ChatMessage(session_id=session.id, role=MessageRole.USER, content="q"))
        second = await store.add_message(
            ChatMessage(
                session_id=session.id,
                role=MessageRole.ASSISTANT,
                content="a",
                used_chunk_ids=["c1", "c2"],
            )
        )

        messages = await store.get_messages(session.id)

        assert [m.id for m in messages] == [first.id, second.id]
        assert messages[1].used_chunk_ids == ["c1", "c2"]
        assert messages[1].role is MessageRole.ASSISTANT

    @pytest.mark.asyncio()
    async def test_message_for_unknown_session_rejected(self, store) -> None:
        with pytest.raises(NotFoundError):
            await store.add_message(ChatMessage(session_id="nope", role=MessageRole.USER, content="q"))

    @pytest.mark.asyncio()
    async def test_update_session_and_message(self, store) -> None:
        session = await store.create_session(ChatSession(owner_id="alice"))
        message = await store.add_message(
            ChatMessage(session_id=session.id, role=MessageRole.ASSISTANT, content="a")
        )

        await store.update_session(session.model_copy(update={"title": "Renamed"}))
        await store.update_message(message.model_copy(update={"feedback_score": 4}))

        assert (await store.get_session(session.id)).title == "Renamed"
        assert (await store.get_message(message.id)).feedback_score == 4

    @pytest.mark.asyncio()
    async def test_sessions_owner_scoped(self, store) -> None:
        base = utc_now()
        old = await store.create_session(ChatSession(owner_id="alice", created_at=base))
        new = await store.create_session(
            ChatSession(owner_id="alice", created_at=base + timedelta(seconds=1))
        )
        await store.create_session(ChatSession(owner_id="bob"))

        sessions = await store.list_sessions("alice")

        assert [s.id for s in sessions] == [new.id, old.id]
        assert await store.get_session("missing") is None


class TestSQLitePersistence:
    @pytest.mark.asyncio()
    async def test_data_survives_new_instance(self, tmp_path, chunk_factory) -> None:
        path = tmp_path / "persist.db"
        first = SQLiteStore(db_path=path)
        await first.initialize()
        document = await first.insert_document(_make_document())
        await first.add_chunks([chunk_factory(document.id, 0, [0.25, -0.5])])

        second = SQLiteStore(db_path=path)
        await second.initialize()

        assert (await second.get_document(document.id)).filename == "notes.txt"
        assert (await second.get_chunks(document.id))[0].embedding == [0.25, -0.5]
