"""
Unit Tests — Document repositories
═══════════════════════════════════
Every test runs against both backends:
  memory : InMemoryDocumentRepository
  sql    : SqlDocumentRepository on SQLite (aiosqlite) in tmp_path

Coverage targets:
  ✅ create assigns increasing ids, status=processing, UTC timestamp
  ✅ update is whole-record and validated; immutable fields untouched
  ✅ update / delete on unknown id → None / False, nothing changes
  ✅ ids never reused; guarded update lands only on its own processing record
  ✅ list_all newest first
  ✅ search: free text over title/description/content/keywords, AND filters,
     "All Types" / "All Categories" sentinels, dot-less file types
  ✅ stats: counts, sizes, processing count, idempotent
"""

from __future__ import annotations

from datetime import timezone

import pytest
import pytest_asyncio
from pydantic import ValidationError

from docshelf.repository.memory import InMemoryDocumentRepository
from docshelf.repository.sql import SqlDocumentRepository
from docshelf.schemas.documents import (
    ALL_CATEGORIES,
    ALL_TYPES,
    DocumentStatus,
    DocumentUpdate,
)
from tests.conftest import completed_update, make_create


@pytest_asyncio.fixture(params=["memory", "sql"])
async def repo(request, tmp_path):
    if request.param == "memory":
        yield InMemoryDocumentRepository()
        return

    sql_repo = await SqlDocumentRepository.from_url(f"sqlite+aiosqlite:///{tmp_path / 'docshelf.db'}")
    yield sql_repo
    await sql_repo.close()


async def _seed_library(repo):
    """Three completed documents + one still processing, oldest first."""
    pdf = await repo.create(make_create("Quantum notes", ".pdf", size_bytes=100))
    await repo.update(pdf.id, completed_update(
        content="our algorithm uses quantum annealing",
        category="Technical",
        keywords=["algorithm", "uses", "quantum", "annealing"],
        page_count=3,
    ))
    contract = await repo.create(make_create("Vendor contract", ".docx", size_bytes=200))
    await repo.update(contract.id, completed_update(
        content="subject to GDPR compliance",
        category="Legal",
        keywords=["subject", "gdpr", "compliance"],
    ))
    study = await repo.create(make_create("Sleep study", ".pdf", size_bytes=300))
    await repo.update(study.id, completed_update(
        content="a longitudinal study of sleep",
        category="Research",
        keywords=["longitudinal", "study", "sleep"],
        description="Custom summary mentioning owls",
    ))
    pending = await repo.create(make_create("Inbox", ".txt", size_bytes=400))
    return pdf, contract, study, pending


@pytest.mark.unit
class TestRepositoryCrud:

    async def test_create_assigns_ids_and_processing(self, repo):
        first = await repo.create(make_create("One"))
        second = await repo.create(make_create("Two"))

        assert first.id >= 1
        assert second.id > first.id
        assert first.status == DocumentStatus.PROCESSING
        assert first.content is None and first.keywords is None
        assert first.upload_timestamp.tzinfo is not None
        assert first.upload_timestamp.utcoffset() == timezone.utc.utcoffset(None)

    async def test_get_round_trip(self, repo):
        created = await repo.create(make_create("Round trip", ".pdf", size_bytes=42))
        assert await repo.get(created.id) == created

    async def test_get_unknown(self, repo):
        assert await repo.get(12345) is None

    async def test_update_completes_and_keeps_immutable_fields(self, repo):
        created = await repo.create(make_create("Report", ".pdf"))

        updated = await repo.update(created.id, completed_update(
            content="text", category="General", keywords=["text"], page_count=1,
        ))

        assert updated.status == DocumentStatus.COMPLETED
        assert updated.keywords == ["text"]
        assert updated.page_count == 1
        for field in ("id", "title", "file_type", "size_bytes", "stored_filename",
                      "original_filename", "upload_timestamp"):
            assert getattr(updated, field) == getattr(created, field)
        assert await repo.get(created.id) == updated

    async def test_update_to_error(self, repo):
        created = await repo.create(make_create())
        updated = await repo.update(created.id, DocumentUpdate(status=DocumentStatus.ERROR))
        assert updated.status == DocumentStatus.ERROR
        assert updated.content is None

    async def test_invalid_update_is_rejected_and_record_unchanged(self, repo):
        created = await repo.create(make_create())

        # completed without the derived fields violates the lifecycle invariant
        with pytest.raises(ValidationError):
            await repo.update(created.id, DocumentUpdate(status=DocumentStatus.COMPLETED))

        assert await repo.get(created.id) == created

    async def test_update_unknown(self, repo):
        assert await repo.update(999, DocumentUpdate(status=DocumentStatus.ERROR)) is None

    async def test_delete(self, repo):
        created = await repo.create(make_create())
        assert await repo.delete(created.id) is True
        assert await repo.get(created.id) is None
        assert await repo.delete(created.id) is False

    async def test_ids_are_not_reused_after_deleting_the_newest(self, repo):
        first = await repo.create(make_create("A"))
        second = await repo.create(make_create("B"))
        await repo.delete(second.id)

        third = await repo.create(make_create("C"))

        assert third.id not in (first.id, second.id)
        assert third.id > second.id

    async def test_guarded_update_applies_to_matching_record(self, repo):
        created = await repo.create(make_create())
        updated = await repo.update(
            created.id, completed_update(), expected_ref=created.stored_filename,
        )
        assert updated.status == DocumentStatus.COMPLETED

    async def test_guarded_update_rejects_other_stored_file(self, repo):
        created = await repo.create(make_create())

        result = await repo.update(
            created.id, completed_update(content="from another upload"),
            expected_ref="ffffffffffffffffffffffffffffffff.txt",
        )

        assert result is None
        assert await repo.get(created.id) == created

    async def test_guarded_update_rejects_terminal_record(self, repo):
        created = await repo.create(make_create())
        done = await repo.update(created.id, completed_update(content="first write"))

        result = await repo.update(
            created.id, DocumentUpdate(status=DocumentStatus.ERROR),
            expected_ref=created.stored_filename,
        )

        assert result is None
        assert await repo.get(created.id) == done

    async def test_delete_unknown_changes_nothing(self, repo):
        await repo.create(make_create())
        before = await repo.stats()
        assert await repo.delete(999) is False
        assert await repo.stats() == before


@pytest.mark.unit
class TestRepositoryQueries:

    async def test_list_all_newest_first(self, repo):
        pdf, contract, study, pending = await _seed_library(repo)
        ids = [d.id for d in await repo.list_all()]
        assert ids == [pending.id, study.id, contract.id, pdf.id]

    async def test_empty_search_equals_list_all(self, repo):
        await _seed_library(repo)
        assert await repo.search() == await repo.list_all()

    async def test_search_by_title(self, repo):
        _, contract, _, _ = await _seed_library(repo)
        assert [d.id for d in await repo.search(query="VENDOR")] == [contract.id]

    async def test_search_by_content(self, repo):
        pdf, _, _, _ = await _seed_library(repo)
        assert [d.id for d in await repo.search(query="annealing")] == [pdf.id]

    async def test_search_by_description(self, repo):
        _, _, study, _ = await _seed_library(repo)
        assert [d.id for d in await repo.search(query="owls")] == [study.id]

    async def test_search_by_keyword(self, repo):
        _, contract, _, _ = await _seed_library(repo)
        assert [d.id for d in await repo.search(query="gdpr")] == [contract.id]

    async def test_file_type_and_category_combine_with_and(self, repo):
        pdf, _, _, _ = await _seed_library(repo)
        results = await repo.search(file_type=".pdf", category="Technical")
        assert [d.id for d in results] == [pdf.id]
        assert all(d.file_type.value == ".pdf" and d.category.value == "Technical" for d in results)

    async def test_file_type_only(self, repo):
        pdf, _, study, _ = await _seed_library(repo)
        assert [d.id for d in await repo.search(file_type=".pdf")] == [study.id, pdf.id]

    async def test_file_type_without_dot(self, repo):
        pdf, _, study, _ = await _seed_library(repo)
        assert [d.id for d in await repo.search(file_type="PDF")] == [study.id, pdf.id]

    async def test_all_sentinels_mean_no_filter(self, repo):
        await _seed_library(repo)
        results = await repo.search(file_type=ALL_TYPES, category=ALL_CATEGORIES)
        assert len(results) == 4

    async def test_processing_documents_never_match_a_category(self, repo):
        await _seed_library(repo)
        assert await repo.search(category="General") == []

    async def test_query_and_filter_mismatch(self, repo):
        await _seed_library(repo)
        assert await repo.search(query="gdpr", file_type=".pdf") == []


@pytest.mark.unit
class TestRepositoryStats:

    async def test_empty(self, repo):
        stats = await repo.stats()
        assert (stats.total_documents, stats.total_size, stats.processing_count) == (0, 0, 0)

    async def test_counts(self, repo):
        await _seed_library(repo)
        stats = await repo.stats()
        assert stats.total_documents == 4
        assert stats.total_size == 1000
        assert stats.processing_count == 1

    async def test_repeated_stats_are_identical(self, repo):
        await _seed_library(repo)
        assert await repo.stats() == await repo.stats()

    async def test_delete_decrements(self, repo):
        pdf, _, _, _ = await _seed_library(repo)
        await repo.delete(pdf.id)
        stats = await repo.stats()
        assert stats.total_documents == 3
        assert stats.total_size == 900

    async def test_ping(self, repo):
        assert await repo.ping() is True
