import requests

from cardforge import health


class _Response:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def test_check_endpoint_online_keeps_details(monkeypatch):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append((url, headers, timeout))
        return _Response(200, {"status": "ok", "version": "1.4.0"})

    monkeypatch.setattr(health.requests, "get", fake_get)

    result = health.check_endpoint("http://backend.test/api/health")

    assert result.status == health.ONLINE
    assert result.online is True
    assert result.details == {"status": "ok", "version": "1.4.0"}
    assert calls == [("http://backend.test/api/health", {"Accept": "application/json"}, 5.0)]


def test_check_endpoint_non_2xx_is_error(monkeypatch):
    monkeypatch.setattr(health.requests, "get", lambda url, **kwargs: _Response(503))

    result = health.check_endpoint("http://backend.test/api/health")

    assert result.status == health.ERROR
    assert result.error == "HTTP 503"


def test_check_endpoint_timeout_and_refusal_are_offline(monkeypatch):
    def timeout(url, **kwargs):
        raise requests.Timeout("timed out")

    def refused(url, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(health.requests, "get", timeout)
    assert health.check_endpoint("http://backend.test/api/health").status == health.OFFLINE

    monkeypatch.setattr(health.requests, "get", refused)
    assert health.check_endpoint("http://backend.test/api/health").status == health.OFFLINE


def test_check_endpoint_other_request_failure_is_error(monkeypatch):
    def invalid(url, **kwargs):
        raise requests.exceptions.InvalidURL("bad url")

    monkeypatch.setattr(health.requests, "get", invalid)

    result = health.check_endpoint("http://backend.test/api/health")

    assert result.status == health.ERROR
    assert result.error == "bad url"


def test_check_backend_health_aggregates_services(monkeypatch):
    def fake_get(url, headers=None, timeout=None):
        if "playercharactergenerator" in url:
            raise requests.ConnectionError("refused")
        return _Response(200, {"status": "ok"})

    monkeypatch.setattr(health.requests, "get", fake_get)
    monkeypatch.setenv("CARDFORGE_API_URL", "http://backend.test/")

    report = health.check_backend_health()

    assert report.main.url == "http://backend.test/api/health"
    assert report.services["statblockgenerator"].online is True
    assert report.services["playercharactergenerator"].status == health.OFFLINE
    assert report.any_online is True
    assert report.all_online is False
    assert report.to_dict()["services"]["statblockgenerator"]["url"] == (
        "http://backend.test/api/statblockgenerator/health"
    )
