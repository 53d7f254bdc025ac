# cgraph/embeddings.py
"""
Embedding provider client + vector similarity helpers.

The provider is an external collaborator: any failure (network, HTTP status,
malformed payload) surfaces as EmbeddingError so callers can refuse the
triggering action without touching the graph.
"""
from __future__ import annotations
import os
from typing import List, Optional, Sequence

import numpy as np

EMBED_PROVIDER    = os.getenv("EMBED_PROVIDER", "openai").lower()   # openai | cohere | local
EMBED_BASE_URL    = os.getenv("EMBED_BASE_URL", "http://localhost:1234/v1")
EMBED_API_KEY     = os.getenv("EMBED_API_KEY", "lm-studio")
EMBED_MODEL       = os.getenv("EMBED_MODEL", "text-embedding-nomic-embed-text-v1.5")
EMBED_TIMEOUT     = float(os.getenv("EMBED_TIMEOUT", "60"))

COHERE_BASE_URL   = os.getenv("COHERE_BASE_URL", "https://api.cohere.ai/v1")
COHERE_API_KEY    = os.getenv("COHERE_API_KEY", "")
COHERE_MODEL      = os.getenv("COHERE_MODEL", "embed-english-v3.0")

LOCAL_EMBED_MODEL = os.getenv("LOCAL_EMBED_MODEL", "sentence-transformers/all-MiniLM-L6-v2")


class EmbeddingError(RuntimeError):
    """Raised when the embedding provider cannot produce a vector."""


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), clipped into [-1, 1].

    A zero-norm vector has no direction, so the result is 0.0 ("no meaningful
    similarity") instead of a division error.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector length mismatch: {va.shape[0] if va.ndim else 0} vs {vb.shape[0] if vb.ndim else 0}")
    norm = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


def safe_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> Optional[float]:
    """Similarity for graph use: None when either side has no usable embedding."""
    if not a or not b or len(a) != len(b):
        return None
    if not np.any(np.asarray(a, dtype=np.float64)) or not np.any(np.asarray(b, dtype=np.float64)):
        return None
    return cosine_similarity(a, b)


def _embed_openai(text: str) -> List[float]:
    import requests
    url = f"{EMBED_BASE_URL.rstrip('/')}/embeddings"
    headers = {"Authorization": f"Bearer {EMBED_API_KEY}", "Content-Type": "application/json"}
    payload = {"model": EMBED_MODEL, "input": [text]}
    r = requests.post(url, headers=headers, json=payload, timeout=EMBED_TIMEOUT)
    r.raise_for_status()
    return r.json()["data"][0]["embedding"]


def _embed_cohere(text: str) -> List[float]:
    import requests
    url = f"{COHERE_BASE_URL.rstrip('/')}/embed"
    headers = {"Authorization": f"Bearer {COHERE_API_KEY}", "Content-Type": "application/json"}
    payload = {
        "texts": [text],
        "model": COHERE_MODEL,
        "input_type": "search_document",
        "truncate": "END",
    }
    r = requests.post(url, headers=headers, json=payload, timeout=EMBED_TIMEOUT)
    r.raise_for_status()
    return r.json()["embeddings"][0]


def _embed_local(text: str) -> List[float]:
    from sentence_transformers import SentenceTransformer
    m = SentenceTransformer(LOCAL_EMBED_MODEL)
    vec = m.encode([text], convert_to_numpy=True, normalize_embeddings=True)[0]
    return vec.astype(np.float32).tolist()


_BACKENDS = {
    "openai": _embed_openai,
    "cohere": _embed_cohere,
    "local": _embed_local,
}


def embed_text(text: str, provider: Optional[str] = None) -> List[float]:
    """Fetch one embedding vector for `text`.

    Raises EmbeddingError on any provider failure or an empty/non-numeric result.
    """
    name = (provider or EMBED_PROVIDER).lower()
    backend = _BACKENDS.get(name)
    if backend is None:
        raise EmbeddingError(f"Unknown embedding provider '{name}'")
    try:
        raw = backend(text)
        vec = [float(x) for x in raw]
    except EmbeddingError:
        raise
    except Exception as exc:
        raise EmbeddingError(f"Failed to fetch embedding from {name}: {exc}") from exc
    if not vec:
        raise EmbeddingError(f"Empty embedding returned by {name}")
    return vec
