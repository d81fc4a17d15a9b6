"""OpenAI embedding wrapper for text-embedding-3-small with in-process LRU cache."""

from __future__ import annotations

import hashlib
from collections import OrderedDict

from profile_canon.clients import get_openai_client
from profile_canon.config import get_settings
from profile_canon.exceptions import EmbeddingError
from profile_canon.utils import retry_openai

# ---------------------------------------------------------------------------
# In-process LRU cache, kept for the lifetime of the process.
# Same text and model always yield the same vector.
# ---------------------------------------------------------------------------
_cache: OrderedDict[str, list[float]] = OrderedDict()


def _cache_key(text: str) -> str:
    return hashlib.sha256(text.encode()).hexdigest()


def _cache_get(text: str) -> list[float] | None:
    key = _cache_key(text)
    if key not in _cache:
        return None
    # Move to end (most-recently-used)
    _cache.move_to_end(key)
    return _cache[key]


def _cache_set(text: str, embedding: list[float]) -> None:
    key = _cache_key(text)
    if len(_cache) >= get_settings().embedding_cache_size:
        _cache.popitem(last=False)  # evict least-recently-used
    _cache[key] = embedding


# ---------------------------------------------------------------------------
# Internal OpenAI caller; the retry decorator lives here, not on the public API
# ---------------------------------------------------------------------------

@retry_openai()
async def _call_openai_embeddings(texts: list[str]) -> list[list[float]]:
    client = get_openai_client()
    settings = get_settings()
    response = await client.embeddings.create(
        model=settings.embedding_model,
        input=texts,
        dimensions=settings.embedding_dimensions,
    )
    embeddings = [item.embedding for item in response.data]
    if len(embeddings) != len(texts) or any(not e for e in embeddings):
        raise EmbeddingError()
    return embeddings


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def embed_text(text: str) -> list[float]:
    """Generate a 768-dimensional embedding, served from cache when possible."""
    cached = _cache_get(text)
    if cached is not None:
        return cached
    result = (await _call_openai_embeddings([text]))[0]
    _cache_set(text, result)
    return result



async def embed_texts(texts: list[str]) -> list[list[float]]:
    """Embed several texts in one request, only sending cache misses."""
    if not texts:
        return []

    results: list[list[float] | None] = [_cache_get(t) for t in texts]

    miss_indices = [i for i, r in enumerate(results) if r is None]
    if miss_indices:
        embeddings = await _call_openai_embeddings([texts[i] for i in miss_indices])
        for idx, emb in zip(miss_indices, embeddings):
            _cache_set(texts[idx], emb)
            results[idx] = emb

    return results  # type: ignore[return-value]
