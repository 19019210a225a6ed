import logging
import re

from sentence_transformers import SentenceTransformer

from app.config import settings

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

_model = None


def _get_model() -> SentenceTransformer:
    global _model
    if _model is None:
        logger.info("Loading embedding model: %s", settings.embedding_model)
        _model = SentenceTransformer(settings.embedding_model)
    return _model


def normalize_query(text: str) -> str:
    """Lowercase, collapse whitespace and trim a query before embedding."""
    return _WHITESPACE_RE.sub(" ", text.lower()).strip()


def embed(text: str) -> list[float]:
    """
    Embed a single (already normalized) text.

    Vectors are unit length, so cosine similarity in the index is a plain
    dot product and identical input always yields the identical vector.
    """
    model = _get_model()
    return model.encode(text, normalize_embeddings=True, show_progress_bar=False).tolist()


def embed_many(texts: list[str]) -> list[list[float]]:
    """Batch variant of :func:`embed` used by ingestion."""
    if not texts:
        return []
    model = _get_model()
    return model.encode(texts, normalize_embeddings=True, show_progress_bar=False).tolist()
