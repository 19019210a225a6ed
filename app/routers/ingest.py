import logging

from fastapi import APIRouter, Depends, HTTPException

from app.models.chunk import IngestRequest, IngestResponse
from app.routers.chat import get_assistant
from app.services.assistant import RagAssistant

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ingest", tags=["ingest"])


def _ingest_and_reload(request: IngestRequest, assistant: RagAssistant) -> IngestResponse:
    """Embed + upsert the chunks, then refresh the catalog from the index."""
    namespace = request.namespace or assistant.namespace
    count = assistant.index.upsert_chunks(request.chunks, namespace)
    products = assistant.reload_catalog()
    return IngestResponse(
        namespace=namespace,
        chunks_stored=count,
        products_known=len(products),
        message=f"{count} chunk tersimpan di ChromaDB.",
    )


@router.post("", response_model=IngestResponse)
def ingest_chunks(request: IngestRequest, assistant: RagAssistant = Depends(get_assistant)):
    """
    Store product chunks in the vector index.

    Runs synchronously; large catalogs should be split across requests.
    """
    if not request.chunks:
        raise HTTPException(status_code=400, detail="Daftar chunk tidak boleh kosong.")

    try:
        return _ingest_and_reload(request, assistant)
    except Exception as exc:
        logger.exception("Ingestion failed for namespace: %s", request.namespace)
        raise HTTPException(status_code=500, detail="Gagal menyimpan chunk ke database.") from exc
