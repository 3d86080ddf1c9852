"""Lexical search on OpenSearch.

Documents are stored with their fields as-is; queries use a ``multi_match``
over title (boosted), content, type and category. The OpenSearch client is
synchronous, so calls run in a worker thread to keep the event loop free for
the concurrent semantic branch.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import structlog
from opensearchpy import OpenSearch, exceptions
from opensearchpy.helpers import bulk
from pydantic import ValidationError

from libs.common.errors import SearchProviderError
from libs.common.models import Document
from .base import DocumentIndexer, LexicalSearchProvider

logger = structlog.get_logger("search_service.lexical")

DOCUMENT_FIELDS = ["id", "title", "content", "type", "category"]

INDEX_BODY = {
    "mappings": {
        "properties": {
            "id": {"type": "keyword"},
            "title": {"type": "text"},
            "content": {"type": "text"},
            "type": {"type": "keyword"},
            "category": {"type": "keyword"},
        }
    },
    "settings": {
        "index": {
            "number_of_shards": 1,
            "number_of_replicas": 0
        }
    }
}


class OpenSearchLexicalProvider(LexicalSearchProvider, DocumentIndexer):
    """OpenSearch-based keyword search and indexing."""

    def __init__(
        self,
        hosts: List[str],
        index_name: str = "hybrid_search",
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_certs: bool = False,
        ssl_assert_hostname: bool = False,
        ssl_show_warn: bool = False,
        client: Optional[OpenSearch] = None
    ):
        """Initialize the provider.

        Args:
            hosts: List of OpenSearch host URLs
            index_name: Index holding the documents
            username: OpenSearch username
            password: OpenSearch password
            verify_certs: Whether to verify SSL certificates
            ssl_assert_hostname: Whether to assert hostname
            ssl_show_warn: Whether to show SSL warnings
            client: Preconfigured client, mainly for tests
        """
        if not hosts and client is None:
            raise ValueError("OpenSearch requires at least one host")

        self.index_name = index_name
        self.client = client or OpenSearch(
            hosts=hosts,
            http_auth=(username, password) if username and password else None,
            verify_certs=verify_certs,
            ssl_assert_hostname=ssl_assert_hostname,
            ssl_show_warn=ssl_show_warn,
            use_ssl=hosts[0].startswith("https"),
        )
        self._initialized = False

    async def initialize(self) -> None:
        """Create the index if it doesn't exist."""
        try:
            exists = await asyncio.to_thread(self.client.indices.exists, index=self.index_name)
            if not exists:
                await asyncio.to_thread(self.client.indices.create, index=self.index_name, body=INDEX_BODY)
                logger.info("OpenSearch index created", index_name=self.index_name)
        except exceptions.OpenSearchException as e:
            raise SearchProviderError(self.source, f"index initialization failed: {e}", e) from e

        self._initialized = True
        logger.info("OpenSearch lexical provider initialized", index_name=self.index_name)

    async def search(self, query: str, max_results: int) -> List[Document]:
        if max_results <= 0:
            return []

        body = {
            "size": max_results,
            "query": {
                "multi_match": {
                    "query": query,
                    "fields": ["title^2", "content", "type", "category"]
                }
            },
            "_source": DOCUMENT_FIELDS
        }

        try:
            response = await asyncio.to_thread(self.client.search, index=self.index_name, body=body)
        except exceptions.OpenSearchException as e:
            raise SearchProviderError(self.source, str(e), e) from e

        documents = []
        for hit in response.get("hits", {}).get("hits", [])[:max_results]:
            document = self._to_document(hit)
            if document is not None:
                documents.append(document)

        logger.info("Lexical search completed", results_count=len(documents))
        return documents

    def _to_document(self, hit: Dict[str, Any]) -> Optional[Document]:
        source = hit.get("_source") or {}
        try:
            return Document(
                id=source.get("id") or hit.get("_id") or "",
                title=source.get("title") or "",
                content=source.get("content") or "",
                type=source.get("type") or "",
                category=source.get("category") or "",
            )
        except ValidationError as e:
            logger.warning("Skipping malformed search hit", hit_id=hit.get("_id"), error=str(e))
            return None

    async def index_documents(self, documents: Sequence[Document]) -> Dict[str, str]:
        """Bulk index documents and refresh so they are searchable at once."""
        if not documents:
            return {}

        if not self._initialized:
            await self.initialize()

        actions = [
            {
                "_op_type": "index",
                "_index": self.index_name,
                "_id": document.id,
                "_source": document.model_dump(),
            }
            for document in documents
        ]

        try:
            success_count, errors = await asyncio.to_thread(
                bulk, self.client, actions, raise_on_error=False, refresh=True
            )
        except exceptions.OpenSearchException as e:
            raise SearchProviderError(self.source, f"bulk index failed: {e}", e) from e

        failed = {}
        for error in errors or []:
            item = error.get("index", {})
            failed[str(item.get("_id"))] = str(item.get("error", "unknown error"))

        logger.info("Documents indexed in OpenSearch", indexed=success_count, failed=len(failed))
        return failed

    async def delete_documents(self, ids: Sequence[str]) -> None:
        if not ids:
            return

        actions = [
            {"_op_type": "delete", "_index": self.index_name, "_id": document_id}
            for document_id in ids
        ]

        try:
            _, errors = await asyncio.to_thread(
                bulk, self.client, actions, raise_on_error=False, refresh=True
            )
        except exceptions.OpenSearchException as e:
            raise SearchProviderError(self.source, f"bulk delete failed: {e}", e) from e

        # Deleting an unknown id answers 404, which is not a failure here
        real_errors = [
            error for error in errors or []
            if error.get("delete", {}).get("status") != 404
        ]
        if real_errors:
            raise SearchProviderError(self.source, f"{len(real_errors)} deletes failed")

        logger.info("Documents deleted from OpenSearch", count=len(ids))

    async def health_check(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self.client.ping))
        except exceptions.OpenSearchException as e:
            logger.error("OpenSearch health check failed", error=str(e))
            return False

    async def close(self) -> None:
        await asyncio.to_thread(self.client.close)
