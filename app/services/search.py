import logging
from dataclasses import dataclass
from typing import Callable

from app.config import settings
from app.models.chunk import SearchMatch
from app.services import embedder
from app.services.catalog import CatalogScope
from app.services.query_expander import QueryExpander

logger = logging.getLogger(__name__)

MIN_FETCH_WIDTH = 200
NOISE_FLOOR = 0.1
FORCED_SECTION_WINDOW = 5
EXPANSION_MIN_MATCHES = 8
EXPANSION_FETCH_WIDTH = 20
MAX_EXPANSION_QUERIES = 2

_EXPANSION_TRIGGERS = ("cara menggunakan", "cara pakai", "how to use", "penggunaan", "instructions")


@dataclass(frozen=True)
class SectionRule:
    """A section that must appear near the top when the question matches."""

    section: str
    triggers: tuple[str, ...]

    def applies_to(self, q_lower: str) -> bool:
        return any(trigger in q_lower for trigger in self.triggers)

    def matches(self, match: SearchMatch) -> bool:
        return match.section.lower() == self.section


SECTION_RULES: tuple[SectionRule, ...] = (
    SectionRule("overview", ("berapa ml", "berapa g", "berapa gr", "berapa gram", "volume", "berat", "ukuran")),
    SectionRule("cara pakai", ("cara menggunakan", "cara pakai", "how to use", "gimana", "bagaimana")),
)


def _matches_product(match: SearchMatch, product_filter) -> bool:
    if product_filter is None or product_filter is CatalogScope.ALL_PRODUCTS:
        return True
    return match.product == product_filter


class VectorSearchEngine:
    """
    Retrieval over the vector index.

    One wide query with the original question, local filtering and
    deduplication, an optional section pin, then up to two narrow
    expansion queries when recall looks thin.
    """

    def __init__(
        self,
        embed: Callable[[str], list[float]] = embedder.embed,
        expander: QueryExpander | None = None,
    ):
        self.embed = embed
        self.expander = expander or QueryExpander()

    def _embed_query(self, text: str) -> list[float]:
        return self.embed(embedder.normalize_query(text))

    def search(
        self,
        question: str,
        index,
        namespace: str | None = None,
        product_filter=None,
        top_k: int | None = None,
    ) -> list[SearchMatch]:
        """
        Retrieve ranked chunks for a question.

        Args:
            question: The user's question.
            index: Anything exposing ``query(vector, top_k, namespace, include_metadata)``.
            namespace: Index partition, defaults to the configured one.
            product_filter: Product name to restrict to, ``CatalogScope.ALL_PRODUCTS``
                or ``None`` for no product filtering.
            top_k: Maximum number of matches returned.

        Returns:
            At most ``top_k`` unique matches, highest score first, except for
            a single forced section chunk pinned at position 0.
        """
        namespace = namespace or settings.namespace
        top_k = settings.search_top_k if top_k is None else top_k
        if top_k <= 0:
            return []

        q_lower = question.lower()
        analysis = self.expander.analyze(question)
        fetch_width = max(analysis.fetch_width, MIN_FETCH_WIDTH)
        logger.info(
            "Search: listing=%s specific=%s brand=%s fetch_width=%d filter=%s",
            analysis.is_catalog_listing,
            analysis.is_specific_search,
            analysis.mentions_brand,
            fetch_width,
            product_filter,
        )

        results = index.query(self._embed_query(question), fetch_width, namespace, include_metadata=True)

        accepted: list[SearchMatch] = []
        seen_ids: set[str] = set()
        for match in results:
            if not _matches_product(match, product_filter):
                continue
            if match.score < NOISE_FLOOR:
                logger.debug("Skipping %s, score too low: %.3f", match.id, match.score)
                continue
            if match.id in seen_ids:
                continue
            accepted.append(match)
            seen_ids.add(match.id)

        pinned = self._pick_forced_section(q_lower, accepted)
        if pinned is not None:
            accepted.remove(pinned)

        needs_expansion = (
            len(accepted) + (pinned is not None) < EXPANSION_MIN_MATCHES
            or any(trigger in q_lower for trigger in _EXPANSION_TRIGGERS)
        )
        if needs_expansion:
            expansions = [q for q in self.expander.expand(question) if q != question]
            for exp_query in expansions[:MAX_EXPANSION_QUERIES]:
                logger.info("Expanded query: %r", exp_query)
                exp_results = index.query(
                    self._embed_query(exp_query), EXPANSION_FETCH_WIDTH, namespace, include_metadata=True
                )
                for match in exp_results:
                    if not _matches_product(match, product_filter) or match.id in seen_ids:
                        continue
                    accepted.append(match)
                    seen_ids.add(match.id)

        accepted.sort(key=lambda m: m.score, reverse=True)
        ranked = [pinned] + accepted if pinned is not None else accepted
        return ranked[:top_k]

    def _pick_forced_section(self, q_lower: str, accepted: list[SearchMatch]) -> SearchMatch | None:
        """First chunk of a required section that missed the top window, if any."""
        for rule in SECTION_RULES:
            if not rule.applies_to(q_lower):
                continue
            if any(rule.matches(m) for m in accepted[:FORCED_SECTION_WINDOW]):
                continue
            for match in accepted[FORCED_SECTION_WINDOW:]:
                if rule.matches(match):
                    logger.info("Forcing %s section to top (score: %.3f)", rule.section, match.score)
                    return match
        return None
