import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

from app.config import settings
from app.models.chunk import SearchMatch
from app.services import embedder
from app.services.catalog import CatalogScope, ProductCatalog
from app.services.composer import AnswerComposer
from app.services.conversation import ConversationStore, Message, Role
from app.services.search import VectorSearchEngine
from app.services.vector_index import ChromaIndex

logger = logging.getLogger(__name__)

NO_RELEVANT_INFO_MESSAGE = "Maaf, tidak ada informasi relevan ditemukan untuk pertanyaan Anda."
DATABASE_UNREACHABLE_MESSAGE = (
    "Maaf, tidak dapat terhubung ke database. Silakan coba lagi atau hubungi administrator."
)

_PROBE_TEXT = "test"
_MAX_SOURCES = 5


@dataclass
class AnswerResult:
    answer: str
    product_detected: str | None
    total_matches: int
    session_id: str
    sources: list[SearchMatch] = field(default_factory=list)


class RagAssistant:
    """
    One question in, one answer out.

    Owns the conversation store for its lifetime; the catalog, search
    engine and composer are shared and stateless per request.
    """

    def __init__(
        self,
        index,
        catalog: ProductCatalog,
        search_engine: VectorSearchEngine,
        composer: AnswerComposer,
        conversations: ConversationStore | None = None,
        namespace: str | None = None,
        embed: Callable[[str], list[float]] = embedder.embed,
    ):
        self.index = index
        self.catalog = catalog
        self.search_engine = search_engine
        self.composer = composer
        self.conversations = conversations or ConversationStore()
        self.namespace = namespace or settings.namespace
        self.embed = embed
        self._probe_vector: list[float] | None = None

    def initialize(self) -> None:
        """Load the product catalog from the index (never raises)."""
        self.catalog.load(self.index, self.namespace)

    def reload_catalog(self) -> list[str]:
        self.catalog.load(self.index, self.namespace)
        return self.catalog.products

    def is_index_reachable(self) -> bool:
        if self._probe_vector is None:
            self._probe_vector = self.embed(_PROBE_TEXT)
        return self.index.ping(self._probe_vector, self.namespace)

    def _display_product(self, product) -> str | None:
        if product is CatalogScope.ALL_PRODUCTS:
            return self.catalog.brand
        return product

    def ask_question(self, question: str, session_id: str | None = None) -> AnswerResult:
        """
        Answer a question, resolving follow-ups against the session.

        Args:
            question: The user's question.
            session_id: Existing session, or ``None`` to start a new one.

        Returns:
            AnswerResult with the answer, detected product, number of
            retrieved matches and the session id to reuse.
        """
        session_id = session_id or self.conversations.new_session_id()

        unreachable = AnswerResult(
            answer=DATABASE_UNREACHABLE_MESSAGE,
            product_detected=None,
            total_matches=0,
            session_id=session_id,
        )
        if not self.is_index_reachable():
            return unreachable

        context = self.conversations.get_context(session_id)
        product = self.catalog.extract_with_context(question, context)
        if product is not None:
            logger.info("Detected product: %s", self._display_product(product))
        else:
            logger.info("No specific product detected, searching all products...")

        try:
            matches = self.search_engine.search(question, self.index, self.namespace, product_filter=product)
        except Exception:
            logger.exception("Vector search failed for question %r", question)
            return unreachable

        if not matches:
            logger.info("No relevant information found")
            answer = NO_RELEVANT_INFO_MESSAGE
        else:
            logger.info("Found %d relevant matches, composing answer", len(matches))
            answer = self.composer.compose(question, matches, context or None, product=product)

        self.conversations.record(session_id, Message(role=Role.USER, content=question, product_detected=product))
        self.conversations.record(session_id, Message(role=Role.ASSISTANT, content=answer))

        return AnswerResult(
            answer=answer,
            product_detected=self._display_product(product),
            total_matches=len(matches),
            session_id=session_id,
            sources=matches[:_MAX_SOURCES],
        )


def build_assistant() -> RagAssistant:
    """Wire the production collaborators from settings."""
    catalog = ProductCatalog()
    composer = AnswerComposer(catalog)
    return RagAssistant(
        index=ChromaIndex(),
        catalog=catalog,
        search_engine=VectorSearchEngine(),
        composer=composer,
        conversations=ConversationStore(timeout=timedelta(minutes=settings.session_timeout_minutes)),
    )
