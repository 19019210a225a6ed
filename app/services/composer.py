import logging
from pathlib import Path
from typing import Callable

from anthropic import APIError

from app.config import settings
from app.models.chunk import SearchMatch
from app.services import claude_client
from app.services.answer_rules import extract_direct_answer
from app.services.catalog import CatalogScope, ProductCatalog, current_product_from_context
from app.services.query_expander import is_catalog_listing, is_specific_search

logger = logging.getLogger(__name__)

_PROMPT_PATH = Path(__file__).parent.parent / "prompts" / "answer_prompt.txt"
_PROMPT_TEMPLATE = _PROMPT_PATH.read_text(encoding="utf-8")

NO_PRODUCTS_MESSAGE = "Maaf, tidak ada informasi produk yang tersedia."
EMPTY_COMPLETION_MESSAGE = "Maaf, tidak dapat menghasilkan jawaban."
COMPLETION_FAILED_MESSAGE = "Maaf, terjadi kesalahan saat memproses pertanyaan Anda."

_LISTING_EXCLUSIONS = ("ingredient", "kandungan", "cara")


def prepare_context(matches: list[SearchMatch]) -> str:
    """Numbered chunk texts annotated with product and section."""
    return "\n\n".join(
        f"[INFO {i}] Product: {match.product} | Section: {match.section}\n{match.text}"
        for i, match in enumerate(matches, start=1)
    )


class AnswerComposer:
    """
    Turns ranked matches into the final answer text.

    Listing questions are answered from the catalog, literal facts through
    the extraction rules, and everything else by the completion model.
    """

    def __init__(
        self,
        catalog: ProductCatalog,
        complete: Callable[..., str] = claude_client.complete,
        max_tokens: int | None = None,
    ):
        self.catalog = catalog
        self.complete = complete
        self.max_tokens = max_tokens or settings.completion_max_tokens

    def is_product_list_question(self, question: str) -> bool:
        q_lower = question.lower()
        brand = self.catalog.brand.lower()
        if self.catalog.mentions_specific_product(question):
            return False
        if is_catalog_listing(question, brand):
            return True
        return (
            "produk" in q_lower
            and brand in q_lower
            and not any(word in q_lower for word in _LISTING_EXCLUSIONS)
        )

    def product_list_answer(self) -> str:
        products = sorted(self.catalog.specific_products())
        logger.info("Listing %d catalog products", len(products))
        if not products:
            return NO_PRODUCTS_MESSAGE

        lines = [f"Berikut adalah daftar produk dari {self.catalog.brand} yang tersedia:", ""]
        lines.extend(f"{i}. {product}" for i, product in enumerate(products, start=1))
        return "\n".join(lines)

    def compose(
        self,
        question: str,
        matches: list[SearchMatch],
        conversation_context: str | None = None,
        product: str | CatalogScope | None = None,
    ) -> str:
        """
        Answer from the ranked matches.

        ``product`` is the product resolved for this question; when given it
        scopes rule extraction instead of the product on the context's
        "current product" line, which still names the previous turn's product.
        """
        if self.is_product_list_question(question):
            logger.info("Product list question detected: %r", question)
            return self.product_list_answer()

        candidates = matches
        if product is CatalogScope.ALL_PRODUCTS:
            current_product = None
        else:
            current_product = product or current_product_from_context(conversation_context)
        if current_product and not is_specific_search(question):
            candidates = [m for m in matches if m.product == current_product]
            logger.info("Scoping extraction to %s: %d matches", current_product, len(candidates))

        direct_answer = extract_direct_answer(question, candidates)
        if direct_answer:
            return direct_answer

        return self._complete_answer(question, matches, conversation_context)

    def build_prompt(self, question: str, matches: list[SearchMatch], conversation_context: str | None = None) -> str:
        conversation_block = ""
        if conversation_context:
            conversation_block = f"\n\nKONTEKS PERCAKAPAN:\n{conversation_context.strip()}"
        return _PROMPT_TEMPLATE.format(
            retrieved_context=prepare_context(matches),
            question=question,
            conversation_block=conversation_block,
        )

    def _complete_answer(self, question: str, matches: list[SearchMatch], conversation_context: str | None) -> str:
        prompt = self.build_prompt(question, matches, conversation_context)
        try:
            text = self.complete(prompt, temperature=0.0, max_tokens=self.max_tokens)
        except APIError as e:
            logger.error("Completion API error: %s", e)
            return COMPLETION_FAILED_MESSAGE
        except Exception:
            logger.exception("Completion failed")
            return COMPLETION_FAILED_MESSAGE

        text = (text or "").strip()
        return text or EMPTY_COMPLETION_MESSAGE
