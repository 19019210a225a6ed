"""
Deterministic answer extraction.

Each rule pairs question triggers with a finder that pulls a literal value
out of a single chunk. Rules are evaluated in table order; the first rule
whose triggers match and whose finder succeeds on some chunk (scanning
chunks in rank order) produces the answer.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

from app.models.chunk import SearchMatch

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_LABEL = "Produk"

_VOLUME_RE = re.compile(r"(\d+[.,]?\d*)\s*ml", re.IGNORECASE)
_WEIGHT_RE = re.compile(r"(\d+[.,]?\d*)\s*(gram|gr|g)\b", re.IGNORECASE)
_PRICE_RE = re.compile(r"Rp\.?\s*\d[\d.,]*", re.IGNORECASE)
_DURATION_RE = re.compile(r"hingga\s*\d+\s*jam|\d+\s*jam|seharian|all day", re.IGNORECASE)
_NUMBERED_STEP_RE = re.compile(r"\d+\.\s+")
_INGREDIENT_LIST_RE = re.compile(r"Aqua,|Talc,|Caprylic")


def format_points(text: str) -> str:
    """Break numbered steps and sentences onto their own lines."""
    text = re.sub(r"(\d+\.\s+)", r"\n\1", text)
    # Step numbers ("1. Bersihkan") are not sentence ends.
    text = re.sub(r"(?<!\d)([.!?])\s*([A-Z])", r"\1\n\2", text)
    text = re.sub(r"[ \t]+\n", "\n", text)
    return text.strip()


def format_ingredients(text: str) -> str:
    return re.sub(r"([a-z])\s*,\s*([A-Z])", r"\1,\n\2", format_points(text))


def _contains_any(haystack: str, needles: tuple[str, ...]) -> bool:
    haystack = haystack.lower()
    return any(needle in haystack for needle in needles)


def _find_volume(match: SearchMatch) -> str | None:
    found = _VOLUME_RE.search(match.text)
    if found:
        return f"{found.group(1).replace(',', '.')} ml"
    return None


def _find_weight(match: SearchMatch) -> str | None:
    found = _WEIGHT_RE.search(match.text)
    if found:
        return f"{found.group(1).replace(',', '.')} {found.group(2).lower()}"
    return None


def _find_price(match: SearchMatch) -> str | None:
    found = _PRICE_RE.search(match.text)
    if found:
        return found.group(0).rstrip(".,")
    return None


def _find_usage(match: SearchMatch) -> str | None:
    if (
        "cara pakai" in match.section.lower()
        or _contains_any(match.text, ("cara pakai", "cara menggunakan", "aplikasikan"))
        or _NUMBERED_STEP_RE.search(match.text)
    ):
        return format_points(match.text)
    return None


def _find_target_market(match: SearchMatch) -> str | None:
    if _contains_any(match.text, ("wanita aktif", "usia 25", "target utama", "life progressor")):
        return match.text
    return None


def _find_ingredients(match: SearchMatch) -> str | None:
    if (
        _contains_any(match.section, ("kandungan", "ingredient"))
        or _contains_any(match.text, ("gold-peptide crystals", "youthglow active"))
        or _INGREDIENT_LIST_RE.search(match.text)
    ):
        return format_ingredients(match.text)
    return None


def _find_benefits(match: SearchMatch) -> str | None:
    if (
        _contains_any(match.section, ("keunggulan", "benefit", "manfaat"))
        or _NUMBERED_STEP_RE.search(match.text)
        or _contains_any(match.text, ("membantu", "memberikan"))
    ):
        return format_points(match.text)
    return None


def _find_skin_type(match: SearchMatch) -> str | None:
    if _contains_any(
        match.text,
        (
            "all skin type",
            "semua jenis kulit",
            "kecuali acne",
            "kulit sensitif",
            "kulit normal",
            "kulit berminyak",
            "kulit kering",
        ),
    ):
        return match.text
    return None


def _find_duration(match: SearchMatch) -> str | None:
    found = _DURATION_RE.search(match.text)
    return found.group(0) if found else None


def _find_finish(match: SearchMatch) -> str | None:
    if _contains_any(match.text, ("medium to full", "soft focus", "matte", "glossy", "natural", "flawless")):
        return match.text
    return None


@dataclass(frozen=True)
class ExtractionRule:
    name: str
    triggers: tuple[str, ...]
    finder: Callable[[SearchMatch], str | None]
    template: str

    def applies_to(self, question: str) -> bool:
        return _contains_any(question, self.triggers)

    def apply(self, matches: list[SearchMatch]) -> str | None:
        for match in matches:
            value = self.finder(match)
            if value:
                product = match.product if match.product != "Unknown" else DEFAULT_PRODUCT_LABEL
                return self.template.format(product=product, value=value)
        return None


EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule("volume", ("berapa ml", "volume", "ukuran", "ml"), _find_volume, "{product} memiliki volume {value}."),
    ExtractionRule(
        "weight",
        ("berapa g", "berapa gram", "berat", "gram", " g ", "berapa gr"),
        _find_weight,
        "{product} memiliki berat {value}.",
    ),
    ExtractionRule("price", ("harga", "price", "biaya"), _find_price, "Harga {product} adalah {value}."),
    ExtractionRule(
        "usage",
        ("cara pakai", "cara menggunakan", "how to use", "cara aplikasi", "cara memakai", "bagaimana cara"),
        _find_usage,
        "**Cara Pakai {product}:**\n{value}",
    ),
    ExtractionRule(
        "target_market",
        ("target pasar", "untuk siapa", "siapa yang", "demografi", "segmen", "usia", "umur"),
        _find_target_market,
        "Target pasar {product}: {value}",
    ),
    ExtractionRule(
        "ingredients",
        ("kandungan", "ingredient", "komposisi", "bahan aktif", "formula"),
        _find_ingredients,
        "**Kandungan {product}:**\n{value}",
    ),
    ExtractionRule(
        "benefits",
        ("keunggulan", "benefit", "manfaat", "kegunaan", "fungsi", "keuntungan", "fitur"),
        _find_benefits,
        "**Keunggulan {product}:**\n{value}",
    ),
    ExtractionRule(
        "skin_type",
        ("skin type", "jenis kulit", "untuk kulit", "aman untuk", "cocok untuk"),
        _find_skin_type,
        "{product} cocok untuk {value}",
    ),
    ExtractionRule(
        "duration",
        ("tahan lama", "durasi", "berapa lama", "seberapa lama", "jam", "hingga"),
        _find_duration,
        "{product} tahan lama {value}",
    ),
    ExtractionRule(
        "finish",
        ("coverage", "hasil", "tekstur", "finish", "aplikasi"),
        _find_finish,
        "Hasil aplikasi {product}: {value}",
    ),
)


# Recommendation questions are scored across products instead of first-match.
RECOMMENDATION_TRIGGERS = (
    "rekomendasi",
    "rekomendasikan",
    "produk yang",
    "yang bisa",
    "yang dapat",
    "untuk",
    "memiliki",
    "ada produk",
)

CRITERIA: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (("hidrasi", "lembab"), ("hidrasi", "lembab", "moisture", "hydration")),
    (("2x", "dua kali"), ("2x", "dua kali", "lebih lembab")),
    (("8 jam", "8h"), ("8 jam", "8h", "8 hour")),
    (("mempertahankan",), ("mempertahankan", "pertahankan", "lasting")),
    (("kerutan", "garis halus"), ("kerutan", "garis halus", "wrinkle", "fine line")),
    (("menyamarkan", "menutupi"), ("menyamarkan", "menutupi", "conceal", "cover")),
    (("mencerahkan", "brightening"), ("mencerahkan", "brightening", "cerah")),
    (("anti aging", "anti-aging"), ("anti aging", "anti-aging", "antiaging")),
    (("spf", "sun protection"), ("spf", "sun protection", "uv protection")),
)


def criteria_keywords(question: str) -> list[str]:
    """Keywords a recommended product's chunks should mention."""
    q_lower = question.lower()
    keywords: list[str] = []
    for cues, criterion_keywords in CRITERIA:
        if any(cue in q_lower for cue in cues):
            keywords.extend(k for k in criterion_keywords if k not in keywords)
    return keywords


def recommend(question: str, matches: list[SearchMatch]) -> str | None:
    """
    Recommend the product(s) whose chunks satisfy the most criteria.

    Every product appearing in ``matches`` is scored by the number of
    criterion keywords found across its chunks. Products tied for the top
    score are all named, in the order they first appear in the matches.
    """
    keywords = criteria_keywords(question)
    if not keywords:
        return None

    scores: dict[str, int] = {}
    for match in matches:
        text_lower = match.text.lower()
        hits = sum(1 for keyword in keywords if keyword in text_lower)
        scores[match.product] = scores.get(match.product, 0) + hits

    top_score = max(scores.values(), default=0)
    if top_score <= 0:
        return None

    top_products = [product for product, score in scores.items() if score == top_score]
    logger.info("Recommending %s with %d matched criteria", top_products, top_score)
    if len(top_products) == 1:
        return (
            f"Berdasarkan kriteria yang Anda sebutkan, saya merekomendasikan **{top_products[0]}** "
            f"karena memenuhi {top_score} kriteria yang Anda cari."
        )
    names = "**, **".join(top_products)
    return (
        f"Berdasarkan kriteria yang Anda sebutkan, saya merekomendasikan **{names}** "
        f"karena sama-sama memenuhi {top_score} kriteria yang Anda cari."
    )


def extract_direct_answer(question: str, matches: list[SearchMatch]) -> str | None:
    """Run the rule table, then the recommendation scorer; ``None`` if nothing fits."""
    for rule in EXTRACTION_RULES:
        if not rule.applies_to(question):
            continue
        answer = rule.apply(matches)
        if answer is not None:
            logger.info("Direct answer from %s rule", rule.name)
            return answer

    if _contains_any(question, RECOMMENDATION_TRIGGERS):
        return recommend(question, matches)
    return None
