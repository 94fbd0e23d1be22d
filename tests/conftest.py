# Ensure the project root is at sys.path[0] when pytest runs
import copy
import sys
from pathlib import Path

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

import pytest

from config import COURTS_INDEX, HEARINGS_INDEX, MEMBERSHIPS_INDEX
from court_directory import CourtDirectory
from elasticsearch_client import DisplayCacheStore


def _field(doc, path):
    value = doc
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _matches(doc_id, doc, query):
    if not query or "match_all" in query:
        return True
    if "bool" in query:
        clauses = query["bool"].get("filter", []) + query["bool"].get("must", [])
        return all(_matches(doc_id, doc, clause) for clause in clauses)
    if "term" in query:
        (field, value), = query["term"].items()
        if isinstance(value, dict):
            value = value["value"]
        return _field(doc, field) == value
    if "terms" in query:
        (field, values), = query["terms"].items()
        return _field(doc, field) in values
    if "exists" in query:
        return _field(doc, query["exists"]["field"]) is not None
    if "ids" in query:
        return doc_id in query["ids"]["values"]
    if "range" in query:
        (field, bounds), = query["range"].items()
        value = _field(doc, field)
        if value is None:
            return False
        checks = {
            "gte": lambda b: value >= b,
            "gt": lambda b: value > b,
            "lte": lambda b: value <= b,
            "lt": lambda b: value < b,
        }
        return all(checks[op](bound) for op, bound in bounds.items())
    raise NotImplementedError(f"Unsupported query: {query}")


class FakeIndices:
    def __init__(self, es):
        self.es = es

    def exists(self, index):
        return index in self.es.docs

    def create(self, index, mappings=None):
        self.es.docs.setdefault(index, {})
        self.es.mappings[index] = mappings

    def refresh(self, index):
        self.es.refreshes.append(index)


class FakeElasticsearch:
    """In-memory stand-in covering the queries the service sends"""

    def __init__(self):
        self.docs = {}
        self.indices = FakeIndices(self)
        self.index_calls = 0
        self.mappings = {}
        # Every refresh the service asked for, explicit or via index(refresh="wait_for")
        self.refreshes = []

    def ping(self):
        return True

    def index(self, index, id, document, refresh=None):
        self.docs.setdefault(index, {})[id] = copy.deepcopy(document)
        self.index_calls += 1
        if refresh == "wait_for":
            self.refreshes.append(index)
        return {"_id": id, "result": "created"}

    def search(self, index, query=None, sort=None, size=10):
        hits = [
            {"_id": doc_id, "_source": copy.deepcopy(doc)}
            for doc_id, doc in self.docs.get(index, {}).items()
            if _matches(doc_id, doc, query)
        ]
        for clause in reversed(sort or []):
            (field, order), = clause.items()
            if isinstance(order, dict):
                order = order.get("order", "asc")
            hits.sort(
                key=lambda h: (_field(h["_source"], field) is None, _field(h["_source"], field) or ""),
                reverse=(order == "desc"),
            )
        return {"hits": {"total": {"value": len(hits)}, "hits": hits[:size]}}

    def count(self, index, query=None):
        return {"count": len(self.search(index, query=query, size=10 ** 6)["hits"]["hits"])}

    # === seeding helpers ===

    def add_court(self, court_id, name, url=None, **extra):
        doc = {"court_name": name, **extra}
        if url:
            doc["display_board_url"] = url
        self.docs.setdefault(COURTS_INDEX, {})[court_id] = doc

    def add_member(self, user_id, workspace_id):
        self.docs.setdefault(MEMBERSHIPS_INDEX, {})[f"{user_id}:{workspace_id}"] = {
            "user_id": user_id,
            "workspace_id": workspace_id,
        }

    def add_hearing(self, hearing_id, workspace_id, hearing_date, court_number, court_id,
                    case_number="CASE/1", title="A vs B"):
        self.docs.setdefault(HEARINGS_INDEX, {})[hearing_id] = {
            "hearing_date": hearing_date,
            "court_number": court_number,
            "workspace_id": workspace_id,
            "case": {
                "id": f"case-{hearing_id}",
                "case_number": case_number,
                "title": title,
                "court_id": court_id,
            },
        }


@pytest.fixture
def es():
    return FakeElasticsearch()


@pytest.fixture
def store(es):
    return DisplayCacheStore(es)


@pytest.fixture
def directory(es):
    return CourtDirectory(es)


BOARD_HTML = """
<html><body>
<table>
  <thead><tr><th>Court</th><th>Item</th><th>Case No</th><th>Title</th><th>Judge</th></tr></thead>
  <tbody>
    <tr><td>Court</td><td>Item</td><td>Case No</td><td>Title</td><td>Judge</td></tr>
    <tr><td>3</td><td>*</td><td>W.P.(C) 1234/2024</td><td>X vs Y</td><td>Hon'ble Z</td></tr>
    <tr><td>C-7</td><td>12</td><td>CRL.A. 55/2023</td><td>State vs Q</td><td>Hon'ble R</td></tr>
  </tbody>
</table>
</body></html>
"""


@pytest.fixture
def board_html():
    return BOARD_HTML
