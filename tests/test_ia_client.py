from __future__ import annotations

import json
import threading
import time
from typing import Any, Dict, List, Optional

import pytest
import requests

from ia_client import IAClient, IAClientError, IAConfigurationError, IAConnection
from resilience import RetryPolicy


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "",
                 headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        self.text = text
        self.headers = headers or {}


class FakeSession:
    def __init__(self, responses: List[Any]) -> None:
        self.responses = responses
        self.calls: List[Dict[str, Any]] = []
        self.auth = None
        self.verify = True
        self.headers: Dict[str, str] = {}

    def request(self, method, url, data=None, headers=None, params=None, timeout=None):
        self.calls.append({"method": method, "url": url, "data": data,
                           "headers": dict(headers or {}), "params": params})
        response = self.responses[len(self.calls) - 1]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        return None


@pytest.fixture
def session(monkeypatch: pytest.MonkeyPatch):
    def install(*responses):
        fake = FakeSession(list(responses))
        monkeypatch.setattr(requests, "Session", lambda: fake)
        return fake
    return install


def test_get_without_body_sends_no_content_headers(session, connection) -> None:
    fake = session(FakeResponse(200, '<Projects/>'))
    client = IAClient(connection)

    text = client.get_project_list()

    assert text == "<Projects/>"
    call = fake.calls[0]
    assert call["url"] == "https://services:9445/ibm/iis/ia/api/projects"
    assert "Content-Type" not in call["headers"]
    assert "Content-Length" not in call["headers"]
    assert call["headers"]["Connection"] == "close"
    assert fake.verify is False


def test_xml_body_is_sent_raw_with_length(session, connection) -> None:
    fake = session(FakeResponse(200, "<ok/>"))
    client = IAClient(connection)

    client.create_project("<Project name=\"é\"/>")

    call = fake.calls[0]
    assert call["url"].endswith("/ibm/iis/ia/api/create")
    assert call["headers"]["Content-Type"] == "text/xml"
    assert call["data"] == "<Project name=\"é\"/>".encode("utf-8")
    assert call["headers"]["Content-Length"] == str(len(call["data"]))


def test_search_serializes_json_and_follows_paging(session, connection) -> None:
    fake = session(
        FakeResponse(200, json.dumps({
            "items": [{"_name": "A"}],
            "paging": {"next": "https://services:9445/ibm/iis/igc-rest/v1/search?begin=1"},
        })),
        FakeResponse(200, json.dumps({"items": [{"_name": "B"}], "paging": {}})),
    )
    client = IAClient(connection)

    items = client.search({"types": ["host"], "properties": ["name"]})

    assert [i["_name"] for i in items] == ["A", "B"]
    assert fake.calls[0]["headers"]["Content-Type"] == "application/json"
    assert json.loads(fake.calls[0]["data"]) == {"types": ["host"], "properties": ["name"]}
    assert fake.calls[1]["method"] == "GET"
    assert fake.calls[1]["url"].endswith("/ibm/iis/igc-rest/v1/search?begin=1")


def test_non_2xx_raises_with_status_and_headers(session, connection) -> None:
    session(FakeResponse(500, "boom", {"X-Trace": "1"}))
    client = IAClient(connection)

    with pytest.raises(IAClientError) as excinfo:
        client.get_analysis_status("42")

    assert excinfo.value.status_code == 500
    assert excinfo.value.headers == {"X-Trace": "1"}


def test_connection_error_is_wrapped(session, connection) -> None:
    session(requests.exceptions.ConnectionError("refused"))
    client = IAClient(connection)

    with pytest.raises(IAClientError):
        client.get_project_list()


def test_incomplete_connection_fails_before_network(session) -> None:
    fake = session(FakeResponse(200, ""))
    client = IAClient(IAConnection(user="isadmin", password="", host="services", port="9445"))

    with pytest.raises(IAConfigurationError):
        client.get_project_list()
    assert fake.calls == []


def test_no_retry_by_default(session, connection) -> None:
    fake = session(FakeResponse(503, ""), FakeResponse(200, "<ok/>"))
    client = IAClient(connection)

    with pytest.raises(IAClientError):
        client.get_project_list()
    assert len(fake.calls) == 1


def test_retry_policy_is_opt_in(session, connection) -> None:
    fake = session(FakeResponse(503, ""), FakeResponse(200, "<ok/>"))
    connection.retry = RetryPolicy(max_attempts=2, backoff_seconds=0, jitter=False)
    client = IAClient(connection)

    assert client.get_project_list() == "<ok/>"
    assert len(fake.calls) == 2


def test_create_asset_reads_rid_from_location(session, connection) -> None:
    session(FakeResponse(201, "", {"Location": "https://services:9445/ibm/iis/igc-rest/v1/assets/b1c497ce.6e83759b"}))
    client = IAClient(connection)

    assert client.create_asset({"_type": "label", "name": "x"}) == "b1c497ce.6e83759b"


def test_status_query_uses_schedule_id_param(session, connection) -> None:
    fake = session(FakeResponse(200, "<TaskExecution/>"))
    IAClient(connection).get_analysis_status("123")

    assert fake.calls[0]["params"] == {"scheduleID": "123"}


def test_results_queries_send_project_and_names(session, connection) -> None:
    fake = session(FakeResponse(200, "<Project/>"), FakeResponse(200, "<ExecutionHistory/>"),
                   FakeResponse(200, "<OutputTable/>"), FakeResponse(200, "<OutputTable/>"))
    client = IAClient(connection)

    client.get_column_analysis_results("P", "DB1.SCH1.T1.*")
    client.get_rule_execution_history("P", "R")
    client.get_rule_output_table("P", "R")
    client.get_rule_output_table("P", "R", execution_id="5", nb_of_rows=20)

    assert fake.calls[0]["url"].endswith("/ibm/iis/ia/api/columnAnalysis/results")
    assert fake.calls[0]["params"] == {"projectName": "P", "columnName": "DB1.SCH1.T1.*"}
    assert fake.calls[1]["url"].endswith("/ibm/iis/ia/api/executableRule/executionHistory")
    assert fake.calls[1]["params"] == {"projectName": "P", "ruleName": "R"}
    assert fake.calls[2]["params"] == {"projectName": "P", "ruleName": "R"}
    assert fake.calls[3]["url"].endswith("/ibm/iis/ia/api/executableRule/outputTable")
    assert fake.calls[3]["params"] == {"projectName": "P", "ruleName": "R",
                                       "executionID": "5", "nbOfRows": 20}


def test_from_domain_parses_host_and_port() -> None:
    connection = IAConnection.from_domain("services.example.com:9445", "u", "p")

    assert connection.host == "services.example.com"
    assert connection.port == "9445"
    with pytest.raises(IAConfigurationError):
        IAConnection.from_domain("services", "u", "p")


class ConcurrentSession(FakeSession):
    """Sessão que mede quantas requisições estão em andamento ao mesmo tempo."""

    def __init__(self, hold_until: int = 1, delay: float = 0.02) -> None:
        super().__init__([])
        self.hold_until = hold_until
        self.delay = delay
        self.in_flight = 0
        self.peak = 0
        self._lock = threading.Lock()
        self._enough = threading.Event()

    def request(self, method, url, data=None, headers=None, params=None, timeout=None):
        with self._lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            if self.in_flight >= self.hold_until:
                self._enough.set()
        self._enough.wait(timeout=2)
        time.sleep(self.delay)
        with self._lock:
            self.in_flight -= 1
        return FakeResponse(200, "<Projects/>")


def _run_concurrently(client: IAClient, count: int) -> None:
    threads = [threading.Thread(target=client.get_project_list) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)


def test_single_connection_serializes_requests(monkeypatch, connection) -> None:
    fake = ConcurrentSession(hold_until=1)
    monkeypatch.setattr(requests, "Session", lambda: fake)
    client = IAClient(connection)

    _run_concurrently(client, 5)

    assert fake.peak == 1
    assert fake.in_flight == 0


def test_max_connections_allows_parallel_requests(monkeypatch, connection) -> None:
    fake = ConcurrentSession(hold_until=2)
    monkeypatch.setattr(requests, "Session", lambda: fake)
    connection.max_connections = 2
    client = IAClient(connection)

    _run_concurrently(client, 5)

    assert fake.peak == 2
    assert fake.in_flight == 0
