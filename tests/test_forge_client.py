import pytest
import requests

from acr_app.core.config import CLIENT_IDENTITIES, FEED_ACCEPT_HEADER
from acr_app.core.forge_client import ForgeClient, ForgeRequestError


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400


class ScriptedSession(requests.Session):
    """Session whose ``get`` replays a script of responses or exceptions."""

    def __init__(self, script):
        super().__init__()
        self.script = list(script)
        self.calls = []

    def get(self, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "headers": dict(headers or {}), "cookies": dict(self.cookies)})
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, tuple):
            resp, cookies = item
            for name, value in cookies.items():
                self.cookies.set(name, value)
            return resp
        return item


def make_client(script, sleeps, low_rng):
    return ForgeClient(session=ScriptedSession(script), sleep=sleeps, rng=low_rng)


def test_urls_are_built_for_tag():
    client = ForgeClient(session=ScriptedSession([]))
    assert client.search_url("wcag111") == (
        "https://www.drupal.org/project/issues/search?status%5BOpen%5D=Open&issue_tags=wcag111"
    )
    assert "issue_tags=wcag143" in client.feed_url("wcag143")
    assert client.absolute("/project/drupal/issues/123") == (
        "https://www.drupal.org/project/drupal/issues/123"
    )
    assert client.absolute("https://example.org/x") == "https://example.org/x"


def test_identity_rotates_per_request(sleeps, low_rng):
    client = make_client([FakeResponse(), FakeResponse(), FakeResponse()], sleeps, low_rng)
    for _ in range(3):
        client.fetch_search("wcag111")
    agents = [c["headers"]["User-Agent"] for c in client.session.calls]
    assert agents[0] == CLIENT_IDENTITIES[0]
    assert agents[1] == CLIENT_IDENTITIES[1 % len(CLIENT_IDENTITIES)]
    assert client.request_count == 3


def test_each_request_is_preceded_by_a_pause(sleeps, low_rng):
    client = make_client([FakeResponse()], sleeps, low_rng)
    client.fetch_search("wcag111")
    assert sleeps.calls == [1.0]


def test_cookies_persist_across_requests(sleeps, low_rng):
    client = make_client(
        [(FakeResponse(), {"SESS": "abc"}), FakeResponse()], sleeps, low_rng
    )
    assert client.warm_up() is True
    client.fetch_search("wcag111")
    assert client.session.calls[1]["cookies"] == {"SESS": "abc"}


def test_network_errors_are_retried(sleeps, low_rng):
    client = make_client(
        [requests.ConnectionError("reset"), requests.Timeout("slow"), FakeResponse(200, "ok")],
        sleeps,
        low_rng,
    )
    resp = client.fetch_search("wcag111")
    assert resp.text == "ok"
    # pre-request pause, backoff 5s, pause, backoff 10s, pause
    assert sleeps.calls == [1.0, 5.0, 1.0, 10.0, 1.0]


def test_network_failure_exhausts_attempts(sleeps, low_rng):
    client = make_client([requests.ConnectionError("down")] * 2, sleeps, low_rng)
    with pytest.raises(ForgeRequestError):
        client.fetch_detail("/project/drupal/issues/1")
    assert len(client.session.calls) == 2


def test_error_status_is_returned_not_raised(sleeps, low_rng):
    client = make_client([FakeResponse(403, "denied")], sleeps, low_rng)
    resp = client.fetch_search("wcag111")
    assert resp.status_code == 403
    assert len(client.session.calls) == 1


def test_feed_uses_feed_accept_header(sleeps, low_rng):
    client = make_client([FakeResponse(200, "<rss/>")], sleeps, low_rng)
    client.fetch_feed("wcag111")
    assert client.session.calls[0]["headers"]["Accept"] == FEED_ACCEPT_HEADER


def test_warm_up_never_raises(sleeps, low_rng):
    client = make_client([requests.ConnectionError("down")], sleeps, low_rng)
    assert client.warm_up() is False
    client = make_client([FakeResponse(503)], sleeps, low_rng)
    assert client.warm_up() is False


def test_broken_reads_are_retried_then_reported(sleeps, low_rng):
    client = make_client(
        [
            requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead"),
            requests.TooManyRedirects("Exceeded 30 redirects."),
        ],
        sleeps,
        low_rng,
    )
    with pytest.raises(ForgeRequestError):
        client.fetch_detail("/project/drupal/issues/1")
    assert len(client.session.calls) == 2
    assert sleeps.calls == [1.0, 5.0, 1.0]
