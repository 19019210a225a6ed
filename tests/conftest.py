import os

os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")

from datetime import datetime, timedelta, timezone

import pytest

from app.models.chunk import SearchMatch
from app.services.catalog import ProductCatalog

EYE_SERUM = "Crystallure Supreme Advanced Eye Serum"
CLEANSING_FOAM = "Crystallure Moisture Rich Cleansing Foam"
HYDRA_GEL = "Crystallure Supreme Advanced Hydra Gel"


class FakeIndex:
    """In-memory stand-in for the vector index; each query pops the next response."""

    def __init__(self, responses=None, products=None, reachable=True):
        self.responses = list(responses or [])
        self.products = products or []
        self.reachable = reachable
        self.calls = []

    def query(self, vector, top_k, namespace, include_metadata=True):
        self.calls.append({"vector": vector, "top_k": top_k, "namespace": namespace})
        response = self.responses.pop(0) if self.responses else []
        if isinstance(response, Exception):
            raise response
        return list(response)[:top_k]

    def ping(self, vector, namespace=None):
        return self.reachable

    def list_product_names(self, namespace, limit=100):
        if isinstance(self.products, Exception):
            raise self.products
        return list(self.products)


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def make_match():
    def _make(id, score, product=EYE_SERUM, section="Overview", text=""):
        return SearchMatch(
            id=id,
            score=score,
            metadata={"product": product, "section": section, "chunk_text": text},
        )

    return _make


@pytest.fixture
def fake_index():
    return FakeIndex


@pytest.fixture
def fake_embed():
    def _embed(text):
        return [float(len(text)), 0.0, 0.0]

    return _embed


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog():
    return ProductCatalog()
