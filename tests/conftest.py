import copy
import itertools
from typing import Any, Callable, Dict, Optional

import pytest


def build_sparse_cube(
    query,
    value_for: Callable[[Dict[str, str]], Any],
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Answer a selection query the way PxWeb does: one row per combination."""
    codes = [entry["code"] for entry in query]
    value_lists = [entry["selection"]["values"] for entry in query]
    data = []
    for combo in itertools.product(*value_lists):
        data.append({"key": list(combo), "values": [value_for(dict(zip(codes, combo)))]})
    cube = {
        "columns": [{"code": c, "text": c, "type": "d"} for c in codes]
        + [{"code": "value", "text": "value", "type": "c"}],
        "data": data,
    }
    if metadata is not None:
        cube["metadata"] = metadata
    return cube


class FakeClient:
    """Stands in for PxClient; tables are keyed by their path parts."""

    def __init__(self, tables):
        self.tables = {tuple(parts): payloads for parts, payloads in tables.items()}
        self.meta_calls = []
        self.queries = []

    def get_meta(self, parts):
        self.meta_calls.append(tuple(parts))
        return copy.deepcopy(self.tables[tuple(parts)][0])

    def post_data(self, parts, body):
        self.queries.append((tuple(parts), body))
        cube = self.tables[tuple(parts)][1]
        if callable(cube):
            cube = cube(body)
        return copy.deepcopy(cube)


def time_variable(codes):
    return {
        "code": "Viti/muaji",
        "text": "Viti/muaji",
        "values": list(codes),
        "valueTexts": list(codes),
        "time": True,
    }


@pytest.fixture()
def fake_client():
    return FakeClient


@pytest.fixture()
def sparse_cube():
    return build_sparse_cube


@pytest.fixture()
def tourism_meta():
    return {
        "title": "Vizitorët dhe netqëndrimet sipas rajoneve",
        "variables": [
            time_variable(["2024M03", "2024M02", "2024M01"]),
            {
                "code": "Rajonet",
                "text": "Rajonet",
                "values": ["1", "2"],
                "valueTexts": ["Prishtinë", "Prizren"],
            },
            {
                "code": "Vendor/jashtem",
                "text": "Vendor/jashtem",
                "values": ["0", "1", "2"],
                "valueTexts": ["Gjithsej", "Vendor", "Jashtëm"],
            },
            {
                "code": "Variabla",
                "text": "Variabla",
                "values": ["0", "1"],
                "valueTexts": ["Vizitorët", "Netqëndrimet"],
            },
        ],
    }


@pytest.fixture(autouse=True)
def _no_git(monkeypatch):
    # Output files written during tests are never tracked.
    monkeypatch.setattr("kas_data.io.mark_skip_worktree", lambda path: False)
