from unittest.mock import MagicMock

import pytest

from app.services.assistant import (
    DATABASE_UNREACHABLE_MESSAGE,
    NO_RELEVANT_INFO_MESSAGE,
    RagAssistant,
)
from app.services.catalog import FALLBACK_PRODUCTS, ProductCatalog
from app.services.composer import AnswerComposer
from app.services.conversation import ConversationStore
from app.services.query_expander import QueryExpander
from app.services.search import VectorSearchEngine

EYE_SERUM = "Crystallure Supreme Advanced Eye Serum"
CLEANSING_FOAM = "Crystallure Moisture Rich Cleansing Foam"


@pytest.fixture
def complete():
    return MagicMock(return_value="Jawaban model.")


@pytest.fixture
def build(fake_embed, complete, clock):
    def _build(index):
        catalog = ProductCatalog()
        return RagAssistant(
            index=index,
            catalog=catalog,
            search_engine=VectorSearchEngine(embed=fake_embed, expander=QueryExpander(brand="Crystallure")),
            composer=AnswerComposer(catalog, complete=complete),
            conversations=ConversationStore(clock=clock),
            namespace="ns1",
            embed=fake_embed,
        )

    return _build


def test_volume_question_answered_without_model(build, fake_index, make_match, complete):
    index = fake_index([[make_match("f1", 0.8, CLEANSING_FOAM, text="Kemasan 150 ml, busa lembut.")]])
    result = build(index).ask_question(f"berapa ml produk {CLEANSING_FOAM}")

    assert "150 ml" in result.answer
    assert CLEANSING_FOAM in result.answer
    assert result.product_detected == CLEANSING_FOAM
    assert result.total_matches == 1
    complete.assert_not_called()


def test_listing_question_enumerates_catalog(build, fake_index, make_match, complete):
    index = fake_index([[make_match("o1", 0.5, EYE_SERUM, text="Overview")]])
    result = build(index).ask_question("apa aja produk crystallure")

    expected = sorted(FALLBACK_PRODUCTS)
    lines = result.answer.splitlines()[2:]
    assert lines == [f"{i}. {name}" for i, name in enumerate(expected, start=1)]
    assert result.product_detected == "Crystallure"
    complete.assert_not_called()


def test_zero_matches(build, fake_index, complete):
    result = build(fake_index()).ask_question("berapa harga serum?")

    assert result.answer == NO_RELEVANT_INFO_MESSAGE
    assert result.total_matches == 0
    complete.assert_not_called()


def test_unreachable_index_short_circuits(build, fake_index):
    index = fake_index(reachable=False)
    assistant = build(index)
    result = assistant.ask_question("berapa harga serum?", "s1")

    assert result.answer == DATABASE_UNREACHABLE_MESSAGE
    assert result.total_matches == 0
    assert index.calls == []
    assert assistant.conversations.history("s1") == []


def test_search_failure_degrades(build, fake_index):
    assistant = build(fake_index([ConnectionError("reset")]))
    result = assistant.ask_question("berapa harga serum?", "s1")

    assert result.answer == DATABASE_UNREACHABLE_MESSAGE
    assert assistant.conversations.history("s1") == []


def test_follow_up_uses_previous_product(build, fake_index, make_match):
    index = fake_index(
        [
            [make_match("e1", 0.9, EYE_SERUM, text="Isi 15 ml.")],
            [],
            [
                make_match("f1", 0.9, CLEANSING_FOAM, text="Harga Rp 120.000"),
                make_match("e2", 0.8, EYE_SERUM, text="Harga Rp 450.000"),
            ],
        ]
    )
    assistant = build(index)

    first = assistant.ask_question(f"berapa ml {EYE_SERUM}?")
    second = assistant.ask_question("berapa harganya itu?", first.session_id)

    assert second.session_id == first.session_id
    assert second.product_detected == EYE_SERUM
    assert second.answer == f"Harga {EYE_SERUM} adalah Rp 450.000."


def test_session_records_both_turns(build, fake_index, make_match):
    assistant = build(fake_index([[make_match("f1", 0.8, CLEANSING_FOAM, text="150 ml")]]))
    result = assistant.ask_question(f"berapa ml {CLEANSING_FOAM}")

    history = assistant.conversations.history(result.session_id)
    assert [m.role.value for m in history] == ["user", "assistant"]
    assert assistant.conversations.last_product(result.session_id) == CLEANSING_FOAM


def test_initialize_loads_catalog(build, fake_index):
    assistant = build(fake_index(products=["Crystallure New Toner"]))
    assistant.initialize()
    assert assistant.catalog.products == ["Crystallure New Toner"]


def test_switching_products_by_name_uses_new_product(build, fake_index, make_match, complete):
    index = fake_index(
        [
            [make_match("e1", 0.9, EYE_SERUM, text="Isi 15 ml.")],
            [],
            [make_match("f1", 0.9, CLEANSING_FOAM, text="Kemasan 150 ml.")],
        ]
    )
    assistant = build(index)

    first = assistant.ask_question(f"berapa ml {EYE_SERUM}?")
    second = assistant.ask_question(f"berapa ml {CLEANSING_FOAM}?", first.session_id)

    assert second.product_detected == CLEANSING_FOAM
    assert second.answer == f"{CLEANSING_FOAM} memiliki volume 150 ml."
    complete.assert_not_called()
    assert assistant.conversations.last_product(first.session_id) == CLEANSING_FOAM
