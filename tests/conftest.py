"""
Shared test fixtures for unit and integration tests.
"""

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from postgrest.exceptions import APIError

from wineflow.engine.flow_store import load_flow_graph


BUNDLED_FLOW = Path(__file__).resolve().parents[1] / "flows" / "wine_flow.json"


MOCK_FLOW_DOCUMENT: Dict[str, Any] = {
    "rootId": "q1",
    "nodes": {
        "q1": {
            "id": "q1",
            "type": "question",
            "text": "Question 1?",
            "options": [
                {"label": "Option A", "nextId": "q2"},
                {"label": "Option B", "nextId": "END"},
            ],
        },
        "q2": {
            "id": "q2",
            "type": "question",
            "text": "Question 2?",
            "options": [
                {"label": "Yes", "nextId": "r1"},
            ],
        },
        "r1": {
            "id": "r1",
            "type": "wine",
            "wine": "White Burgundy",
            "wineKey": "white_burgundy",
            "blurb": "A classic choice",
        },
    },
}


@pytest.fixture
def mock_flow_document() -> Dict[str, Any]:
    """Fresh copy of the three-node flow (q1 -> q2 -> r1, q1 -> END)."""
    return copy.deepcopy(MOCK_FLOW_DOCUMENT)


@pytest.fixture
def mock_flow_graph(mock_flow_document):
    return load_flow_graph(mock_flow_document)


@pytest.fixture
def message_flow_graph():
    """Flow with message nodes, including one that ends the flow."""
    return load_flow_graph({
        "rootId": "welcome",
        "nodes": {
            "welcome": {"id": "welcome", "type": "message", "text": "Hi!", "nextId": "q1"},
            "q1": {
                "id": "q1",
                "type": "question",
                "text": "Drinking tonight?",
                "options": [
                    {"label": "Yes", "nextId": "w1"},
                    {"label": "No", "nextId": "bye"},
                    {"label": "Broken", "nextId": "missing"},
                ],
            },
            "bye": {"id": "bye", "type": "message", "text": "Another time.", "nextId": "end"},
            "w1": {"id": "w1", "type": "wine", "wine": "Chinon", "wineKey": "chinon"},
        },
    })


@pytest.fixture
def bundled_flow_path() -> Path:
    return BUNDLED_FLOW


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]]):
        self.data = data


class FakeQuery:
    """Records the query chain and answers it from canned rows per search term."""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.term: Optional[str] = None
        self.reference_table: Optional[str] = None
        self.max_price: Optional[float] = None
        self.limit_n: Optional[int] = None

    def select(self, columns: str) -> "FakeQuery":
        return self

    def or_(self, filters: str, reference_table: Optional[str] = None) -> "FakeQuery":
        first = filters.split(",")[0]
        self.term = first[first.index("%") + 1:first.rindex("%")]
        self.reference_table = reference_table
        return self

    def lte(self, column: str, value: float) -> "FakeQuery":
        self.max_price = value
        return self

    def order(self, column: str, desc: bool = False, nullsfirst: bool = False) -> "FakeQuery":
        return self

    def limit(self, n: int) -> "FakeQuery":
        self.limit_n = n
        return self

    async def execute(self) -> FakeResponse:
        self.client.calls.append(self)
        if self.client.exc is not None:
            raise self.client.exc
        if self.client.error:
            raise APIError({"message": self.client.error, "code": "500", "hint": None, "details": None})
        rows = list(self.client.rows_by_term.get(self.term, []))
        if self.max_price is not None:
            rows = [r for r in rows if r.get("specific_price") is not None and r["specific_price"] <= self.max_price]
        rows.sort(key=lambda r: r.get("rating") or 0, reverse=True)
        return FakeResponse(rows[: self.limit_n])


class FakeSupabase:
    def __init__(
        self,
        rows_by_term: Dict[str, List[Dict[str, Any]]],
        error: Optional[str] = None,
        exc: Optional[Exception] = None,
    ):
        self.rows_by_term = rows_by_term
        self.error = error
        self.exc = exc
        self.calls: List[FakeQuery] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


def wine_row(name: str, price: Optional[float], rating: float, style: str = "Red", store: str = "Corner Shop") -> Dict[str, Any]:
    return {
        "id": name.lower().replace(" ", "_"),
        "rating": rating,
        "specific_price": price,
        "purchased_from_store": store,
        "wines_master": {
            "name": name,
            "appellation": None,
            "region": "Loire",
            "country": "France",
            "style": style,
        },
    }


@pytest.fixture
def fake_supabase_factory():
    """Factory for FakeSupabase clients."""
    return FakeSupabase


@pytest.fixture
def make_wine_row():
    return wine_row
