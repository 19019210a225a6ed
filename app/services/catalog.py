import enum
import logging
import re

from app.config import settings
from app.services.query_expander import is_catalog_listing
from app.services.vector_index import PRODUCT_SAMPLE_SIZE

logger = logging.getLogger(__name__)

WORD_OVERLAP_THRESHOLD = 0.4
FUZZY_MATCH_THRESHOLD = 0.4
MIN_WORD_LENGTH = 3

CURRENT_PRODUCT_LABEL = "Produk yang sedang dibicarakan:"

FALLBACK_PRODUCTS = (
    "Crystallure Moisture Rich Cleansing Foam",
    "Crystallure Supreme Double Action Micellar Gel",
    "Crystallure Precious All Day Corrective Concealer",
    "Crystallure Precious Lustre Prism Blush",
    "Crystallure Precious Lustre Prism Eyeshadow",
    "Crystallure Precious Lustre Prism Lipstick",
    "Crystallure Supreme Advanced Hydra Gel",
    "Crystallure Supreme Activating Overnight Cream",
    "Crystallure Supreme Revitalizing Rich Cream",
    "Crystallure Dual Refining Treatment Solution",
    "Crystallure Precious Luminizing Silk Powder Foundation",
    "Crystallure Supreme Advanced Eye Serum",
    "Crystallure Supreme Activating Booster Essence",
    "Crystallure Precious Liquid Lip Couture",
    "Crystallure Precious Glow Radiance Powder",
    "Crystallure Supreme Revitalizing Oil Serum",
)

_STOPWORDS = frozenset({"for", "and", "the"})
_QUESTION_WORDS = ("berapa", "apa", "untuk", "yang", "adalah", "tentang", "bagaimana", "kapan", "siapa", "dimana")
_REFERENCE_WORDS = (
    "itu",
    "tadi",
    "sebelumnya",
    "yang",
    "produk",
    "item",
    "berapa",
    "harga",
    "cara",
    "keunggulan",
    "tersebut",
    "nya",
)


class CatalogScope(enum.Enum):
    """Extraction result meaning "the whole brand catalog, no specific product"."""

    ALL_PRODUCTS = "all_products"


class ProductCatalog:
    """
    Known product names and product-name extraction from free text.

    The product set is an immutable tuple replaced wholesale on reload, so
    readers always see either the old or the new set.
    """

    def __init__(self, products=FALLBACK_PRODUCTS, brand: str | None = None):
        self.brand = brand or settings.brand_name
        self._brand_lower = self.brand.lower()
        self._products: tuple[str, ...] = tuple(products)
        self._question_words_re = re.compile(
            r"\b(" + "|".join(_QUESTION_WORDS + (re.escape(self._brand_lower),)) + r")\b"
        )

    @property
    def products(self) -> list[str]:
        return list(self._products)

    def specific_products(self) -> list[str]:
        """Catalog names excluding a bare brand entry."""
        return [p for p in self._products if p.lower() != self._brand_lower]

    def mentions_specific_product(self, question: str) -> bool:
        q_lower = question.lower()
        return any(p.lower() in q_lower for p in self.specific_products())

    def load(self, source, namespace: str | None = None) -> None:
        """
        Refresh the product set from the vector index.

        Never raises: on failure, or when the index yields no names, the
        previous set is kept.
        """
        namespace = namespace or settings.namespace
        logger.info("Loading product list from namespace %s...", namespace)
        try:
            names = source.list_product_names(namespace, limit=PRODUCT_SAMPLE_SIZE)
        except Exception as e:
            logger.warning("Could not load products from index, keeping %d known products: %s", len(self._products), e)
            return

        if not names:
            logger.warning("Index returned no product names, keeping %d known products", len(self._products))
            return

        self._products = tuple(names)
        logger.info("Found %d products in database", len(self._products))

    def _strip_brand(self, text: str) -> str:
        return text.lower().replace(self._brand_lower, "", 1).strip()

    def _distinguishing_words(self, product: str) -> list[str]:
        words = [
            w for w in self._strip_brand(product).split()
            if len(w) >= MIN_WORD_LENGTH and w not in _STOPWORDS
        ]
        return list(dict.fromkeys(words))

    def extract(self, question: str) -> str | None:
        """
        Find the catalog product a question refers to.

        Tries, in order: a full product name contained in the question
        (longest wins), whole-word overlap with each product's
        distinguishing words (best score, at least 40%), and a looser
        substring match against the question with filler words removed.
        """
        return self._extract(question.lower(), self._products)

    def _extract(self, q_lower: str, products: tuple[str, ...]) -> str | None:
        exact_matches = [p for p in products if p.lower() in q_lower]
        if exact_matches:
            best = max(exact_matches, key=len)
            logger.info("Exact product match: %s", best)
            return best

        best_match = self._best_word_overlap(q_lower, products)
        if best_match is not None:
            return best_match

        return self._fuzzy_match(q_lower, products)

    def _best_word_overlap(self, q_lower: str, products: tuple[str, ...]) -> str | None:
        best_match = None
        best_score = 0.0
        best_word_count = 0

        for product in products:
            words = self._distinguishing_words(product)
            if not words:
                continue

            matched = sum(1 for w in words if re.search(rf"\b{re.escape(w)}\b", q_lower))
            if matched == 0:
                continue
            score = matched / len(words)

            is_better = (
                score > best_score
                or (score == best_score and matched > best_word_count)
                or (score == best_score and matched == best_word_count and len(product) > len(best_match or ""))
            )
            if is_better:
                best_match, best_score, best_word_count = product, score, matched

        if best_match is not None and best_score >= WORD_OVERLAP_THRESHOLD:
            logger.info("Word-overlap product match: %s (score %.2f)", best_match, best_score)
            return best_match

        logger.debug("No word-overlap match (best score %.2f)", best_score)
        return None

    def _fuzzy_match(self, q_lower: str, products: tuple[str, ...]) -> str | None:
        question_clean = self._question_words_re.sub("", q_lower).strip()
        if len(question_clean) <= 3:
            return None

        for product in products:
            words = [w for w in self._strip_brand(product).split() if len(w) >= MIN_WORD_LENGTH]
            if not words:
                continue
            match_count = sum(1 for w in words if w in question_clean)
            if match_count >= len(words) * FUZZY_MATCH_THRESHOLD:
                logger.info("Fuzzy product match: %s (%d/%d words)", product, match_count, len(words))
                return product
        return None

    def extract_with_context(self, question: str, conversation_context: str | None = None):
        """
        Context-aware extraction.

        Returns ``CatalogScope.ALL_PRODUCTS`` for brand-wide listing
        questions, a product named in the question, the product currently
        under discussion when the question refers back to it, or ``None``
        for an unscoped search. A direct mention always beats the context.
        """
        q_lower = question.lower()

        # "berapa ml produk Crystallure X" names X, it does not ask for the list.
        if (
            is_catalog_listing(question, self.brand)
            and self._brand_lower in q_lower
            and not self.mentions_specific_product(question)
        ):
            logger.info("Brand-wide listing question detected")
            return CatalogScope.ALL_PRODUCTS

        direct = self._extract(q_lower, tuple(self.specific_products()))
        if direct is not None:
            logger.info("Specific product detected in question: %s", direct)
            return direct

        has_reference = any(word in q_lower for word in _REFERENCE_WORDS)
        if has_reference and conversation_context:
            current = current_product_from_context(conversation_context)
            if current and current.lower() != self._brand_lower:
                logger.info("Using product from conversation context: %s", current)
                return current

            specific = self.specific_products()
            for line in conversation_context.split("\n"):
                line_lower = line.lower()
                for product in specific:
                    if product.lower() in line_lower:
                        logger.info("Found product in conversation history: %s", product)
                        return product

        logger.info("No specific product detected, searching all data")
        return None


def current_product_from_context(conversation_context: str | None) -> str | None:
    """Read the "current product" line rendered by the conversation store."""
    if not conversation_context:
        return None
    for line in conversation_context.split("\n"):
        if line.startswith(CURRENT_PRODUCT_LABEL):
            value = line[len(CURRENT_PRODUCT_LABEL):].strip()
            if value and value.lower() not in ("null", "none"):
                return value
    return None
