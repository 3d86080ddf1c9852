"""Tests for the in-memory vector index."""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from libs.common.errors import EmbeddingError
from libs.vector_store.base import VectorDimensionError
from libs.vector_store.memory import InMemoryVectorIndex, cosine_similarity
from tests.conftest import FakeEmbeddingProvider, make_document


def test_cosine_similarity_identical_and_orthogonal():
    vec1 = np.array([1.0, 0.0, 0.0])
    vec2 = np.array([0.0, 1.0, 0.0])
    vec3 = np.array([2.0, 0.0, 0.0])

    assert cosine_similarity(vec1, vec2) == pytest.approx(0.0)
    assert cosine_similarity(vec1, vec3) == pytest.approx(1.0)
    assert cosine_similarity(vec1, -vec3) == pytest.approx(-1.0)


def test_cosine_similarity_symmetric():
    a = np.array([0.3, -1.2, 4.0, 0.5])
    b = np.array([2.0, 0.1, -0.7, 1.5])
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_cosine_similarity_degenerate_inputs():
    """Zero vectors and mismatched shapes score 0.0 instead of raising."""
    assert cosine_similarity(np.zeros(3), np.array([1.0, 2.0, 3.0])) == 0.0
    assert cosine_similarity(np.array([1.0, 2.0]), np.array([1.0, 2.0, 3.0])) == 0.0
    assert cosine_similarity(np.array([np.nan, 1.0]), np.array([1.0, 1.0])) == 0.0


def test_upsert_overwrites_same_id():
    index = InMemoryVectorIndex(FakeEmbeddingProvider())
    index.upsert(make_document("a", "first"), [1.0, 0.0])
    index.upsert(make_document("b", "other"), [0.0, 1.0])
    index.upsert(make_document("a", "second"), [0.0, 1.0])

    assert len(index) == 2
    assert index.get("a").document.title == "second"
    # Overwriting keeps the original position
    assert index.ids() == ["a", "b"]


def test_upsert_stores_read_only_copy():
    index = InMemoryVectorIndex(FakeEmbeddingProvider())
    vector = np.array([1.0, 2.0, 3.0])
    index.upsert(make_document("a"), vector)
    vector[0] = 100.0

    stored = index.get("a").vector
    assert stored[0] == 1.0
    assert not stored.flags.writeable


def test_upsert_checks_configured_dimension():
    index = InMemoryVectorIndex(FakeEmbeddingProvider(), dimension=3)
    index.upsert(make_document("a"), [1.0, 2.0, 3.0])

    with pytest.raises(VectorDimensionError):
        index.upsert(make_document("b"), [1.0, 2.0])

    assert "b" not in index


def test_delete_counts_and_ignores_unknown_ids():
    index = InMemoryVectorIndex(FakeEmbeddingProvider())
    index.upsert(make_document("a"), [1.0])
    index.upsert(make_document("b"), [1.0])

    assert index.delete(["a", "missing"]) == 1
    assert index.delete(["missing"]) == 0
    assert index.ids() == ["b"]

    index.clear()
    assert len(index) == 0


def test_similarity_search_ranks_best_first():
    index = InMemoryVectorIndex(FakeEmbeddingProvider())
    index.upsert(make_document("x"), [1.0, 0.0])
    index.upsert(make_document("y"), [0.0, 1.0])
    index.upsert(make_document("xy"), [1.0, 1.0])

    results = index.similarity_search([1.0, 0.1], top_k=2)

    assert [document.id for document, _ in results] == ["x", "xy"]
    assert results[0][1] >= results[1][1]


def test_similarity_search_top_k_bounds():
    index = InMemoryVectorIndex(FakeEmbeddingProvider())
    for i in range(3):
        index.upsert(make_document(f"d{i}"), [1.0, float(i)])

    assert index.similarity_search([1.0, 0.0], top_k=0) == []
    assert index.similarity_search([1.0, 0.0], top_k=-1) == []
    assert len(index.similarity_search([1.0, 0.0], top_k=10)) == 3


def test_similarity_search_ties_keep_insertion_order():
    index = InMemoryVectorIndex(FakeEmbeddingProvider())
    for document_id in ["first", "second", "third"]:
        index.upsert(make_document(document_id), [1.0, 1.0])

    results = index.similarity_search([1.0, 1.0], top_k=3)
    assert [document.id for document, _ in results] == ["first", "second", "third"]


def test_similarity_search_skips_mismatched_dimensions():
    """Without a configured dimension a mismatched entry scores 0.0."""
    index = InMemoryVectorIndex(FakeEmbeddingProvider())
    index.upsert(make_document("short"), [1.0, 0.0])
    index.upsert(make_document("long"), [1.0, 0.0, 0.0])

    results = dict(
        (document.id, score) for document, score in index.similarity_search([1.0, 0.0, 0.0], top_k=2)
    )
    assert results["long"] == pytest.approx(1.0)
    assert results["short"] == 0.0


@pytest.mark.asyncio
async def test_query_empty_index_skips_embedding():
    provider = FakeEmbeddingProvider()
    index = InMemoryVectorIndex(provider)

    assert await index.query("python developer", top_k=5) == []
    assert provider.calls == []


@pytest.mark.asyncio
async def test_query_non_positive_top_k():
    provider = FakeEmbeddingProvider()
    index = InMemoryVectorIndex(provider)
    index.upsert(make_document("a"), [1.0] * 10)

    assert await index.query("python", top_k=0) == []
    assert provider.calls == []


@pytest.mark.asyncio
async def test_upsert_many_embeds_formatted_text():
    provider = FakeEmbeddingProvider()
    index = InMemoryVectorIndex(provider)
    document = make_document("job1", "Python Developer", "Build APIs", "job_description", "engineering")

    report = await index.upsert_many([document])

    assert report.ok
    assert report.indexed == ["job1"]
    assert provider.calls == [
        "Title: Python Developer\nContent: Build APIs\nType: job_description\nCategory: engineering"
    ]


@pytest.mark.asyncio
async def test_upsert_many_reports_failures_and_continues():
    provider = FakeEmbeddingProvider(fail_on={"broken"})
    index = InMemoryVectorIndex(provider, max_concurrency=2)
    documents = [
        make_document("good1", "Python"),
        make_document("bad", "broken laptop"),
        make_document("good2", "Java"),
    ]

    report = await index.upsert_many(documents)

    assert not report.ok
    assert report.indexed == ["good1", "good2"]
    assert list(report.failed) == ["bad"]
    assert "bad" not in index
    assert len(index) == 2


@pytest.mark.asyncio
async def test_upsert_many_reports_dimension_mismatch():
    index = InMemoryVectorIndex(FakeEmbeddingProvider(), dimension=3)

    report = await index.upsert_many([make_document("a", "python")])

    assert report.indexed == []
    assert "a" in report.failed


@pytest.mark.asyncio
async def test_self_query_ranks_document_first():
    provider = FakeEmbeddingProvider()
    index = InMemoryVectorIndex(provider)
    documents = [
        make_document("job1", "Python Developer", "python developer remote"),
        make_document("product1", "Gaming Laptop", "laptop battery gaming"),
    ]
    await index.upsert_many(documents)

    vector = await provider.embed(documents[1].embedding_text())
    (best, score), = index.similarity_search(vector, top_k=1)
    assert best.id == "product1"
    assert score == pytest.approx(1.0)

    assert [document.id for document in await index.query("gaming laptop", top_k=1)] == ["product1"]


@pytest.mark.asyncio
async def test_query_propagates_embedding_errors():
    index = InMemoryVectorIndex(FakeEmbeddingProvider(fail_on={"explode"}))
    index.upsert(make_document("a"), [1.0] * 10)

    with pytest.raises(EmbeddingError):
        await index.query("explode", top_k=1)


def test_stats():
    index = InMemoryVectorIndex(FakeEmbeddingProvider(), dimension=2)
    index.upsert(make_document("a", type="product", category="electronics"), [1.0, 0.0])
    index.upsert(make_document("b", type="product", category="audio"), [0.0, 1.0])
    index.upsert(make_document("c", type="job", category="electronics"), [1.0, 1.0])

    stats = index.stats()
    assert stats["total_documents"] == 3
    assert stats["dimensions"] == [2]
    assert stats["configured_dimension"] == 2
    assert stats["by_type"] == {"product": 2, "job": 1}
    assert stats["by_category"] == {"electronics": 2, "audio": 1}


def test_concurrent_upserts_and_queries():
    """Writers and readers on separate threads never see a torn index."""
    index = InMemoryVectorIndex(FakeEmbeddingProvider())
    rng = np.random.default_rng(7)
    vectors = rng.random((200, 8))

    def write(i):
        index.upsert(make_document(f"d{i % 50}"), vectors[i])

    def read(i):
        results = index.similarity_search(vectors[i], top_k=5)
        assert len(results) <= 5
        assert all(-1.0 - 1e-9 <= score <= 1.0 + 1e-9 for _, score in results)

    with ThreadPoolExecutor(max_workers=8) as executor:
        futures = [executor.submit(write, i) for i in range(200)]
        futures += [executor.submit(read, i) for i in range(200)]
        for future in futures:
            future.result()

    assert len(index) == 50
