import logging
from dataclasses import dataclass

from app.config import settings

logger = logging.getLogger(__name__)

LISTING_FETCH_WIDTH = 500
INGREDIENT_FETCH_WIDTH = 400
DEFAULT_FETCH_WIDTH = 300

_LISTING_PHRASES = ("apa aja", "produk apa", "daftar produk", "semua produk", "produk dari")
_SPECIFIC_SEARCH_PHRASES = (
    "mengandung",
    "kandungan",
    "ingredient",
    "komposisi",
    "bahan",
    "apa yang mengandung",
    "yang dilengkapi",
    "yang menggunakan",
    "teknologi",
)
_INGREDIENT_PHRASES = ("ingredientsnya", "kandungannya", "ingredientnya", "komposisinya")


def listing_phrases(brand: str) -> tuple[str, ...]:
    return _LISTING_PHRASES + (f"produk {brand.lower()}",)


def is_catalog_listing(question: str, brand: str) -> bool:
    """True when the question asks for the list of all products."""
    q_lower = question.lower()
    return any(phrase in q_lower for phrase in listing_phrases(brand))


def is_specific_search(question: str) -> bool:
    """True for composition/technology questions that must not be scoped by context."""
    q_lower = question.lower()
    return any(phrase in q_lower for phrase in _SPECIFIC_SEARCH_PHRASES)


@dataclass(frozen=True)
class QuestionAnalysis:
    is_catalog_listing: bool
    is_specific_search: bool
    is_ingredient_question: bool
    mentions_brand: bool
    fetch_width: int


@dataclass(frozen=True)
class ExpansionTopic:
    name: str
    triggers: tuple[str, ...]
    keywords: str


# Checked in declaration order; each matching topic contributes one query.
EXPANSION_TOPICS: tuple[ExpansionTopic, ...] = (
    ExpansionTopic("volume", ("berapa ml", "volume", "ukuran", "size"), "ml volume ukuran overview"),
    ExpansionTopic(
        "weight",
        ("berapa g", "berapa gram", "berat", "gram", " g ", "berapa gr"),
        "gram berat g gr overview",
    ),
    ExpansionTopic("price", ("harga", "price", "biaya"), "harga price overview"),
    ExpansionTopic(
        "usage",
        ("cara pakai", "cara menggunakan", "how to use", "gimana", "bagaimana"),
        "cara pakai cara menggunakan penggunaan instructions how to use step by step tutorial",
    ),
    ExpansionTopic("benefits", ("manfaat", "benefit", "kegunaan", "fungsi"), "manfaat benefit kegunaan"),
    ExpansionTopic(
        "ingredients",
        ("mengandung", "kandungan", "ingredient", "komposisi", "bahan"),
        "kandungan ingredient komposisi bahan aktif",
    ),
    ExpansionTopic("age", ("usia", "umur", "age"), "usia umur age recommended"),
    ExpansionTopic("listing", _LISTING_PHRASES, "overview daftar produk list semua produk"),
)


class QueryExpander:
    def __init__(self, brand: str | None = None, topics: tuple[ExpansionTopic, ...] = EXPANSION_TOPICS):
        self.brand = brand or settings.brand_name
        self.topics = topics

    def _triggers(self, topic: ExpansionTopic) -> tuple[str, ...]:
        if topic.name == "listing":
            return listing_phrases(self.brand)
        return topic.triggers

    def expand(self, question: str) -> list[str]:
        """
        Build the query variants used to widen recall.

        The original question always comes first, followed by one variant
        per matching topic, in topic declaration order.
        """
        q_lower = question.lower()
        queries = [question]
        for topic in self.topics:
            if any(trigger in q_lower for trigger in self._triggers(topic)):
                queries.append(f"{question} {topic.keywords}")
        logger.debug("Expanded %r into %d queries", question, len(queries))
        return queries

    def analyze(self, question: str) -> QuestionAnalysis:
        q_lower = question.lower()
        listing = is_catalog_listing(question, self.brand)
        ingredient = any(phrase in q_lower for phrase in _INGREDIENT_PHRASES)

        if listing:
            fetch_width = LISTING_FETCH_WIDTH
        elif ingredient:
            fetch_width = INGREDIENT_FETCH_WIDTH
        else:
            fetch_width = DEFAULT_FETCH_WIDTH

        return QuestionAnalysis(
            is_catalog_listing=listing,
            is_specific_search=is_specific_search(question),
            is_ingredient_question=ingredient,
            mentions_brand=self.brand.lower() in q_lower,
            fetch_width=fetch_width,
        )
