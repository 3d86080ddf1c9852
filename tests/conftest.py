"""Shared fakes and fixtures for the search service tests."""

import asyncio
import re
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pytest
from prometheus_client import CollectorRegistry

from libs.common.config import SearchConfig
from libs.common.errors import EmbeddingError, SearchProviderError
from libs.common.metrics import MetricsCollector
from libs.common.models import Document
from libs.vector_store.embedding import EmbeddingProvider
from service_search.app.hybrid.search_manager import SearchManager
from service_search.app.intelligence.query_rewriter import PassthroughQueryRewriter, QueryRewriter
from service_search.app.retrievers.base import DocumentIndexer, LexicalSearchProvider

VOCABULARY = [
    "python", "java", "developer", "engineer", "remote",
    "laptop", "phone", "camera", "gaming", "battery",
]


def make_document(document_id: str, title: str = "", content: str = "", type: str = "doc",
                  category: str = "general") -> Document:
    return Document(id=document_id, title=title, content=content, type=type, category=category)


def tokenize(text: str) -> List[str]:
    return re.findall(r"[a-z]+", text.lower())


class FakeEmbeddingProvider(EmbeddingProvider):
    """Bag-of-words counts over ``VOCABULARY``.

    Texts containing any ``fail_on`` marker raise ``EmbeddingError``.
    """

    def __init__(self, fail_on: Iterable[str] = ()):
        self.fail_on = set(fail_on)
        self.calls: List[str] = []

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        for marker in self.fail_on:
            if marker in text:
                raise EmbeddingError(f"cannot embed text containing {marker!r}")
        tokens = tokenize(text)
        return np.array([tokens.count(word) for word in VOCABULARY], dtype=np.float64)


class FakeLexicalProvider(LexicalSearchProvider, DocumentIndexer):
    """Keyword matching over an in-memory dict.

    With ``results`` set, every search answers that fixed list instead.
    """

    def __init__(self, results: Optional[List[Document]] = None,
                 index_failures: Optional[Dict[str, str]] = None):
        self.results = results
        self.index_failures = index_failures or {}
        self.documents: Dict[str, Document] = {}
        self.queries: List[str] = []

    async def search(self, query: str, max_results: int) -> List[Document]:
        self.queries.append(query)
        if self.results is not None:
            return list(self.results)

        terms = set(tokenize(query))
        matches = [
            document for document in self.documents.values()
            if terms & set(tokenize(f"{document.title} {document.content}"))
        ]
        return matches[:max_results]

    async def index_documents(self, documents: Sequence[Document]) -> Dict[str, str]:
        for document in documents:
            if document.id not in self.index_failures:
                self.documents[document.id] = document
        return {
            document.id: self.index_failures[document.id]
            for document in documents if document.id in self.index_failures
        }

    async def delete_documents(self, ids: Sequence[str]) -> None:
        for document_id in ids:
            self.documents.pop(document_id, None)


class FailingLexicalProvider(LexicalSearchProvider):
    async def search(self, query: str, max_results: int) -> List[Document]:
        raise SearchProviderError(self.source, "connection refused")


class SlowLexicalProvider(LexicalSearchProvider):
    def __init__(self, delay: float = 1.0):
        self.delay = delay

    async def search(self, query: str, max_results: int) -> List[Document]:
        await asyncio.sleep(self.delay)
        return []


class StaticQueryRewriter(QueryRewriter):
    def __init__(self, rewritten: str):
        self.rewritten = rewritten

    async def rewrite(self, query: str) -> str:
        return self.rewritten


class RaisingQueryRewriter(QueryRewriter):
    async def rewrite(self, query: str) -> str:
        raise RuntimeError("rewriter crashed")


JOB_DOCUMENTS = [
    make_document("job1", "Python Developer", "Remote python developer role", "job_description", "engineering"),
    make_document("job2", "Java Engineer", "Java engineer for backend services", "job_description", "engineering"),
    make_document("product1", "Gaming Laptop", "Laptop with long battery life", "product", "electronics"),
    make_document("product2", "Camera Phone", "Phone with a great camera", "product", "electronics"),
]


@pytest.fixture
def search_config():
    """Search config with rewriting off and a short provider timeout."""
    return SearchConfig(
        ml_query_rewrite_enabled=False,
        ml_search_provider_timeout_seconds=0.2,
        ml_search_seed_sample_data=False,
    )


@pytest.fixture
def metrics_collector():
    return MetricsCollector("test-service", registry=CollectorRegistry())


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def lexical_provider():
    return FakeLexicalProvider()


@pytest.fixture
def search_manager(search_config, embedding_provider, lexical_provider, metrics_collector):
    return SearchManager(
        search_config,
        embedding_provider=embedding_provider,
        lexical_provider=lexical_provider,
        query_rewriter=PassthroughQueryRewriter(),
        metrics_collector=metrics_collector,
    )
