import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.routers import chat, ingest, products
from app.services import embedder
from app.services.assistant import build_assistant
from app.services.conversation import ConversationStore

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def _evict_sessions_periodically(store: ConversationStore, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        store.evict_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warm up the embedding model, load the catalog and start session cleanup."""
    logger.info("Starting up: loading embedding model and product catalog...")
    embedder._get_model()
    assistant = build_assistant()
    assistant.initialize()
    app.state.assistant = assistant

    cleanup = asyncio.create_task(
        _evict_sessions_periodically(assistant.conversations, settings.session_cleanup_interval_seconds)
    )
    logger.info("Startup complete.")
    yield
    logger.info("Shutting down.")
    cleanup.cancel()
    with suppress(asyncio.CancelledError):
        await cleanup


app = FastAPI(
    title="Crystallure Product Assistant",
    description=(
        "Tanya-jawab produk Crystallure berbasis RAG: pencarian vektor "
        "di ChromaDB dan jawaban dari Claude."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router)
app.include_router(products.router)
app.include_router(ingest.router)


@app.get("/health", tags=["health"])
async def health_check():
    return {"status": "ok", "version": "1.0.0"}
