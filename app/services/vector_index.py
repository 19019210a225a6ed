import hashlib
import logging
from pathlib import Path

import chromadb
from chromadb.config import Settings as ChromaSettings

from app.config import settings
from app.models.chunk import ChunkIn, SearchMatch
from app.services import embedder

logger = logging.getLogger(__name__)

PRODUCT_SAMPLE_SIZE = 100


class ChromaIndex:
    """
    Vector index backed by a persistent ChromaDB collection.

    Namespaces partition the collection through a ``namespace`` metadata
    field; every read and write is scoped to one namespace.
    """

    def __init__(self, path: str | None = None, collection_name: str | None = None):
        self.path = path or settings.chroma_path
        self.collection_name = collection_name or settings.collection_name
        self._client = None
        self._collection = None

    def _get_client(self) -> chromadb.PersistentClient:
        if self._client is None:
            Path(self.path).mkdir(parents=True, exist_ok=True)
            self._client = chromadb.PersistentClient(
                path=self.path,
                settings=ChromaSettings(anonymized_telemetry=False),
            )
        return self._client

    def _get_collection(self) -> chromadb.Collection:
        if self._collection is None:
            self._collection = self._get_client().get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        return self._collection

    def query(
        self,
        vector: list[float],
        top_k: int,
        namespace: str,
        include_metadata: bool = True,
    ) -> list[SearchMatch]:
        """
        Return up to ``top_k`` chunks ranked by similarity to ``vector``.

        Args:
            vector: Query embedding.
            top_k: Number of candidates to request.
            namespace: Partition to search.
            include_metadata: Whether to fetch chunk metadata.

        Returns:
            Matches ordered by descending score (``1 - cosine distance``).
        """
        collection = self._get_collection()
        include = ["distances", "metadatas"] if include_metadata else ["distances"]

        results = collection.query(
            query_embeddings=[vector],
            n_results=top_k,
            where={"namespace": namespace},
            include=include,
        )

        ids = (results.get("ids") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0] if include_metadata else []

        matches = []
        for position, chunk_id in enumerate(ids):
            metadata = metadatas[position] if position < len(metadatas) else None
            matches.append(
                SearchMatch(
                    id=chunk_id,
                    score=1.0 - float(distances[position]),
                    metadata=metadata,
                )
            )
        return matches

    def ping(self, vector: list[float], namespace: str | None = None) -> bool:
        """Cheap top-1 query used to check the index is reachable."""
        try:
            self.query(vector, top_k=1, namespace=namespace or settings.namespace)
        except Exception as e:
            logger.warning("Vector index unreachable: %s", e)
            return False
        return True

    def list_product_names(self, namespace: str, limit: int = PRODUCT_SAMPLE_SIZE) -> list[str]:
        """Distinct product names from a sample of stored chunks, first-seen order."""
        collection = self._get_collection()
        sample = collection.get(where={"namespace": namespace}, limit=limit, include=["metadatas"])

        seen: dict[str, None] = {}
        for meta in sample.get("metadatas") or []:
            product = (meta or {}).get("product")
            if product and product not in seen:
                seen[product] = None
        return list(seen)

    def count(self, namespace: str) -> int:
        results = self._get_collection().get(where={"namespace": namespace}, include=[])
        return len(results.get("ids", []))

    def upsert_chunks(self, chunks: list[ChunkIn], namespace: str) -> int:
        """
        Embed and store product chunks.

        Chunks without an explicit id get a stable one derived from their
        product, section and text, so re-ingesting the same chunk overwrites
        it instead of duplicating it.

        Returns:
            Number of chunks upserted.
        """
        if not chunks:
            logger.warning("No chunks to upsert into namespace %s", namespace)
            return 0

        ids = [chunk.id or _chunk_id(namespace, chunk) for chunk in chunks]
        documents = [chunk.text for chunk in chunks]
        metadatas = [
            {
                "namespace": namespace,
                "product": chunk.product,
                "section": chunk.section,
                "chunk_text": chunk.text,
            }
            for chunk in chunks
        ]

        embeddings = embedder.embed_many([embedder.normalize_query(doc) for doc in documents])
        self._get_collection().upsert(
            ids=ids, documents=documents, embeddings=embeddings, metadatas=metadatas
        )
        logger.info("Upserted %d chunks into namespace %s", len(ids), namespace)
        return len(ids)


def _chunk_id(namespace: str, chunk: ChunkIn) -> str:
    digest = hashlib.sha1(
        f"{namespace}|{chunk.product}|{chunk.section}|{chunk.text}".encode("utf-8")
    ).hexdigest()
    return f"{namespace}_{digest[:16]}"
