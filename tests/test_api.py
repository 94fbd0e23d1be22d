"""HTTP and WebSocket surface, run against the in-memory Elasticsearch fake."""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from api_endpoints import AppServices
from config import DISPLAY_BOARD_INDEX
from fanout import FanoutService
from main import create_app
from models import DisplayBoardEntry, FetchResult, monitor_state
from schema import INDEX_MAPPINGS

AUTH = {"X-User-Id": "u1"}


@pytest.fixture(autouse=True)
def reset_monitor_state():
    monitor_state.update({
        "is_running": False,
        "last_check": None,
        "total_runs": 0,
        "last_run_courts": 0,
        "last_run_successful": 0,
        "errors": [],
    })
    yield


@pytest.fixture
def fetched_urls():
    return []


@pytest.fixture
def services(store, directory, board_html, fetched_urls):
    def fetch(url):
        fetched_urls.append(url)
        if "down" in url:
            return FetchResult(ok=False, http_status=503, message="HTTP 503: Service Unavailable")
        return FetchResult(ok=True, html=board_html, http_status=200)

    return AppServices(store=store, directory=directory, fanout=FanoutService(), fetch=fetch)


@pytest.fixture
def client(services):
    app = create_app(services, autostart=False)
    with TestClient(app) as test_client:
        yield test_client


def test_root_lists_endpoints(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "/ws/display-board" in response.json()["endpoints"]


def test_status(client):
    body = client.get("/status").json()
    assert body["is_running"] is False
    assert body["connections"] == 0


def test_stop_when_not_running(client):
    response = client.post("/stop")
    assert response.status_code == 400
    assert response.json()["error"] == "Monitoring is not running"


def test_stop_cancels_the_running_loop(client, services):
    assert client.post("/start").status_code == 200
    first = services.monitor_task

    assert client.post("/stop").status_code == 200
    assert services.monitor_task is None

    assert client.post("/start").status_code == 200
    assert services.monitor_task is not first
    client.get("/status")
    assert first.cancelled()


def test_startup_creates_indices_without_autostart(es, services):
    with TestClient(create_app(services, autostart=False)):
        pass

    assert set(es.mappings) == set(INDEX_MAPPINGS)
    cache_mapping = es.mappings[DISPLAY_BOARD_INDEX]["properties"]
    assert cache_mapping["court_number"]["type"] == "keyword"
    assert cache_mapping["raw_data"]["enabled"] is False


@pytest.mark.parametrize("method,path", [
    ("get", "/display-board"),
    ("get", "/display-board/scrape"),
])
def test_requires_caller_identity(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 401


def test_post_requires_caller_identity(client):
    response = client.post("/display-board/scrape", json={"scrapeAll": True})
    assert response.status_code == 401


def test_get_by_court(client, es, store):
    es.add_court("A", "Court A", "https://a.example/board")
    store.upsert("A", DisplayBoardEntry(court_number="3", item_number="12", status="IN PROGRESS"))
    store.upsert("A", DisplayBoardEntry(court_number="7"))

    body = client.get("/display-board", params={"courtId": "A"}, headers=AUTH).json()

    assert [r["courtNumber"] for r in body["displayData"]] == ["3", "7"]
    assert body["displayData"][0]["court"]["courtName"] == "Court A"

    narrowed = client.get("/display-board", params={"courtId": "A", "courtNumber": "7"}, headers=AUTH).json()
    assert [r["courtNumber"] for r in narrowed["displayData"]] == ["7"]


def test_get_for_todays_hearings(client, es, store):
    es.add_court("A", "Court A", "https://a.example/board")
    es.add_member("u1", "w1")
    es.add_hearing("h1", "w1", f"{date.today().isoformat()}T10:30:00", "3", "A", case_number="W.P.(C) 1/2024")
    es.add_hearing("h2", "w-other", f"{date.today().isoformat()}T10:30:00", "7", "A")
    store.upsert("A", DisplayBoardEntry(court_number="3", item_number="4"))
    store.upsert("A", DisplayBoardEntry(court_number="7"))

    body = client.get("/display-board", headers=AUTH).json()

    assert [h["caseNumber"] for h in body["userHearings"]] == ["W.P.(C) 1/2024"]
    assert body["userHearings"][0]["court"]["courtName"] == "Court A"
    assert [r["courtNumber"] for r in body["displayData"]] == ["3"]
    assert [r["courtNumber"] for r in body["allCourtData"]] == ["3", "7"]


def test_get_without_hearings(client):
    body = client.get("/display-board", headers=AUTH).json()
    assert body == {"displayData": [], "userHearings": [], "allCourtData": []}


@pytest.mark.parametrize("payload", [
    {"entries": []},
    {"courtId": "A"},
    {"courtId": "A", "entries": "not-a-list"},
])
def test_post_display_board_rejects_bad_body(client, payload):
    response = client.post("/display-board", json=payload, headers=AUTH)
    assert response.status_code == 400


def test_post_display_board_unknown_court(client):
    response = client.post("/display-board", json={"courtId": "nope", "entries": []}, headers=AUTH)
    assert response.status_code == 404
    assert response.json()["detail"] == "Court not found"


def test_post_display_board_writes_cache(client, es, store):
    es.add_court("A", "Court A")
    payload = {
        "courtId": "A",
        "entries": [
            {"courtNumber": "5", "itemNumber": "9", "status": "IN PROGRESS", "rawData": {"source": "manual"}},
        ],
    }

    body = client.post("/display-board", json=payload, headers=AUTH).json()

    assert body["updated"] == 1
    (record,) = store.get("A")
    assert record["status"] == "IN PROGRESS"
    assert record["rawData"] == {"source": "manual"}
    assert body["entries"][0]["id"] == record["id"]


def test_scrape_status_lists_configured_courts(client, es, store):
    es.add_court("A", "Court A", "https://a.example/board")
    es.add_court("B", "Court B")
    store.upsert("A", DisplayBoardEntry(court_number="3"))

    body = client.get("/display-board/scrape", headers=AUTH).json()

    assert body["totalCourts"] == 1
    (court,) = body["courts"]
    assert court["id"] == "A"
    assert court["cachedEntries"] == 1
    assert court["freshness"] == "Fresh"


def test_scrape_status_for_one_court(client, es):
    es.add_court("A", "Court A", "https://a.example/board")

    body = client.get("/display-board/scrape", params={"courtId": "A"}, headers=AUTH).json()

    assert body["court"]["courtName"] == "Court A"
    assert body["entries"] == []
    assert body["lastUpdated"] is None
    assert body["freshness"] == "Never Synced"


@pytest.mark.parametrize("payload", [{}, {"courtId": "A", "scrapeAll": True}])
def test_scrape_needs_exactly_one_target(client, payload):
    response = client.post("/display-board/scrape", json=payload, headers=AUTH)
    assert response.status_code == 400
    assert response.json()["detail"] == "Either courtId or scrapeAll is required"


def test_scrape_unknown_court(client):
    response = client.post("/display-board/scrape", json={"courtId": "nope"}, headers=AUTH)
    assert response.status_code == 404


def test_scrape_court_without_url(client, es):
    es.add_court("B", "Court B")
    response = client.post("/display-board/scrape", json={"courtId": "B"}, headers=AUTH)
    assert response.status_code == 400
    assert response.json()["detail"] == "No display board URL configured for this court"


def test_scrape_uses_override_url(client, es, store, fetched_urls):
    es.add_court("B", "Court B")

    body = client.post(
        "/display-board/scrape",
        json={"courtId": "B", "url": "https://override.example/board"},
        headers=AUTH,
    ).json()

    assert fetched_urls == ["https://override.example/board"]
    assert body["results"][0]["entriesCount"] == 2
    assert len(store.get("B")) == 2


def test_scrape_all_summarizes(client, es, store):
    es.add_court("A", "Court A", "https://a.example/board")
    es.add_court("D", "Court D", "https://down.example/board")
    es.add_court("N", "Court N")

    body = client.post("/display-board/scrape", json={"scrapeAll": True}, headers=AUTH).json()

    assert body["success"] is True
    assert body["message"] == "Scraped 1/2 courts successfully"
    assert body["summary"] == {"total": 2, "successful": 1, "failed": 1, "totalEntries": 2}
    failed = next(r for r in body["results"] if r["courtId"] == "D")
    assert failed["error"] == "HTTP 503: Service Unavailable"
    assert store.get("D") == []


def test_scrape_all_without_courts(client):
    body = client.post("/display-board/scrape", json={"scrapeAll": True}, headers=AUTH).json()
    assert body == {"success": True, "message": "No courts with display board URLs found", "results": []}


def test_socket_subscribe_ack(client):
    with client.websocket_connect("/ws/display-board") as ws:
        ws.send_json({"type": "subscribe", "courtIds": ["B", "A"]})
        assert ws.receive_json() == {"type": "subscribed", "courtIds": ["A", "B"]}

        ws.send_json({"type": "unsubscribe"})
        assert ws.receive_json() == {"type": "subscribed", "courtIds": []}


@pytest.mark.parametrize("raw,message", [
    ("not json", "Invalid JSON"),
    ("[1, 2]", "Message must be an object"),
    ('{"type": "subscribe", "courtIds": "A"}', "courtIds must be a list"),
    ('{"type": "hello"}', "Unknown message type: hello"),
])
def test_socket_rejects_bad_messages(client, raw, message):
    with client.websocket_connect("/ws/display-board") as ws:
        ws.send_text(raw)
        assert ws.receive_json() == {"type": "error", "message": message}


def test_socket_receives_only_subscribed_courts(client, es):
    es.add_court("A", "Court A")
    es.add_court("B", "Court B")

    with client.websocket_connect("/ws/display-board") as ws:
        ws.send_json({"type": "subscribe", "courtIds": ["A"]})
        ws.receive_json()

        client.post("/display-board", json={"courtId": "B", "entries": [{"courtNumber": "1"}]}, headers=AUTH)
        client.post("/display-board", json={"courtId": "A", "entries": [{"courtNumber": "3"}]}, headers=AUTH)

        event = ws.receive_json()
        assert event["type"] == "display-update"
        assert event["courtId"] == "A"
        assert event["courtName"] == "Court A"
        assert [e["courtNumber"] for e in event["entries"]] == ["3"]


def test_scrape_pushes_to_subscribers(client, es):
    es.add_court("A", "Court A", "https://a.example/board")

    with client.websocket_connect("/ws/display-board") as ws:
        ws.send_json({"type": "subscribe", "courtIds": ["A"]})
        ws.receive_json()

        client.post("/display-board/scrape", json={"courtId": "A"}, headers=AUTH)

        event = ws.receive_json()
        assert event["courtId"] == "A"
        assert [e["courtNumber"] for e in event["entries"]] == ["3", "7"]
