"""
Product search providers.

A SearchProvider turns a query into a ranked list of Products. Two
implementations:

- TrieveSearchProvider: hybrid search against a Trieve dataset over HTTP
- CatalogSearchProvider: keyword-overlap ranking over an in-memory catalog

Providers raise ProviderError subclasses; the CandidateRetriever decides
what an error means for the turn.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from core.api_retry import DEFAULT_SEARCH_RETRY, RetryConfig, RetryHandler, to_provider_error
from core.context import Product
from core.errors import MalformedProviderResponse, ProviderError
from core.filters import extract_keywords
from core.structured_logging import get_logger

# Module-level logger
_logger = get_logger("core.search_provider")


class SearchProvider(ABC):
    """Returns ranked product documents for a query."""

    name = "search"

    @abstractmethod
    def search(self, query: str, limit: int) -> list[Product]:
        """
        Args:
            query: Normalized query text
            limit: Maximum number of products

        Returns:
            Products, best match first

        Raises:
            ProviderError: on timeout, rate limit, non-2xx or unreadable payload
        """
        pass

    def close(self) -> None:
        pass


class TrieveSearchProvider(SearchProvider):
    """
    Trieve hybrid chunk search.

    Each chunk carries a product document in its metadata.

    Example:
        with TrieveSearchProvider(api_key="tr-...", dataset_id="ds-...") as provider:
            products = provider.search("red tote", 10)
    """

    name = "trieve"
    SEARCH_PATH = "/api/chunk/search"

    def __init__(
        self,
        api_key: str,
        dataset_id: str,
        base_url: str = "https://api.trieve.ai",
        timeout_seconds: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Trieve API key is required")
        if not dataset_id:
            raise ValueError("Trieve dataset id is required")
        self.dataset_id = dataset_id
        self.timeout_seconds = timeout_seconds
        self.retry_config = retry_config or DEFAULT_SEARCH_RETRY

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "TR-Dataset": dataset_id,
        }
        if client is None:
            client = httpx.Client(
                base_url=base_url.rstrip("/"),
                headers=headers,
                timeout=timeout_seconds,
            )
        else:
            client.headers.update(headers)
        self._client = client

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self._client.close()

    def search(self, query: str, limit: int) -> list[Product]:
        body = {
            "query": query,
            "dataset_id": self.dataset_id,
            "limit": limit,
            "search_type": "hybrid",
        }

        def _post() -> dict:
            response = self._client.post(self.SEARCH_PATH, json=body)
            response.raise_for_status()
            return response.json()

        handler = RetryHandler(config=self.retry_config, operation_name="trieve_search")
        try:
            payload = handler.execute(_post, deadline=self.timeout_seconds)
        except ValueError as e:
            # response.json() on a non-JSON body
            raise MalformedProviderResponse(f"invalid JSON: {e}", provider="search") from e
        except ProviderError:
            raise
        except Exception as e:
            raise to_provider_error(e, "search") from e

        return self.parse_results(payload, limit)

    def parse_results(self, payload: Any, limit: int) -> list[Product]:
        """
        Read products out of a chunk-search response.

        Both the current shape (score_chunks[].metadata[0].metadata) and the
        older one (score_chunks[].chunk.metadata) are accepted. Chunks whose
        metadata is not a valid product are skipped.
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("score_chunks"), list):
            raise MalformedProviderResponse("response has no score_chunks list", provider="search")

        products: list[Product] = []
        skipped = 0
        for entry in payload["score_chunks"]:
            document = self._chunk_document(entry)
            if document is None:
                skipped += 1
                continue
            try:
                products.append(Product.from_dict(document))
            except ValueError:
                skipped += 1
            if len(products) >= limit:
                break

        if skipped:
            _logger.warning(
                f"Skipped {skipped} malformed search results",
                extra={"event": "search_results_skipped", "skipped": skipped},
            )
        return products

    @staticmethod
    def _chunk_document(entry: Any) -> Optional[dict]:
        if not isinstance(entry, dict):
            return None
        chunk = None
        metadata = entry.get("metadata")
        if isinstance(metadata, list) and metadata and isinstance(metadata[0], dict):
            chunk = metadata[0]
        elif isinstance(entry.get("chunk"), dict):
            chunk = entry["chunk"]
        if chunk is None:
            return None
        document = chunk.get("metadata")
        if not isinstance(document, dict):
            return None
        if "id" not in document and chunk.get("tracking_id"):
            document = {**document, "id": chunk["tracking_id"]}
        return document


class CatalogSearchProvider(SearchProvider):
    """
    Ranks an in-memory catalog by keyword overlap with the query.

    Name hits count double. Products with no overlap are left out.

    Example:
        provider = CatalogSearchProvider(load_catalog("data/sample_products.json"))
        provider.search("black leather wallet", 5)
    """

    name = "catalog"

    def __init__(self, products: list[Product]):
        self.products = list(products)

    def search(self, query: str, limit: int) -> list[Product]:
        keywords = extract_keywords(query)
        if not keywords:
            return []
        scored = []
        for product in self.products:
            text = product.searchable_text()
            name = product.name.lower()
            score = sum(1 for k in keywords if k in text) + sum(1 for k in keywords if k in name)
            if score > 0:
                scored.append((score, product))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [product for _, product in scored[:limit]]
