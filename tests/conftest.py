"""Shared fakes: an in-memory requests session and a recording sink."""

import json
from collections import defaultdict, deque

import pytest
import requests

from mollylauncher.core.settings import SettingsManager


class FakeResponse:
    def __init__(self, status_code=200, body=b"", headers=None, chunks=None, fail_after=None):
        self.status_code = status_code
        self.headers = dict(headers or {})
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode("utf-8")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self._body = body
        self._chunks = chunks
        self._fail_after = fail_after
        self.closed = False

    @property
    def content(self):
        return self._body

    def iter_content(self, chunk_size=1):
        chunks = self._chunks
        if chunks is None:
            chunks = [self._body[i:i + chunk_size] for i in range(0, len(self._body), chunk_size)]
        for index, chunk in enumerate(chunks):
            if self._fail_after is not None and index >= self._fail_after:
                raise requests.ConnectionError("connection reset")
            yield chunk

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def redirect(location, status=302):
    return FakeResponse(status_code=status, headers={"Location": location})


class FakeSession:
    """
    Routes ``get`` calls by URL. A route may be a single response (served
    every time), a list of responses (served in order) or an exception.
    """

    def __init__(self, routes=None):
        self.routes = {}
        self.calls = []
        self._served = defaultdict(int)
        for url, value in (routes or {}).items():
            self.add(url, value)

    def add(self, url, value):
        self.routes[url] = deque(value) if isinstance(value, list) else value

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if url not in self.routes:
            raise requests.ConnectionError(f"no route to {url}")
        route = self.routes[url]
        if isinstance(route, deque):
            route = route.popleft()
        if isinstance(route, Exception):
            raise route
        return route


class RecordingSink:
    def __init__(self):
        self.events = []

    def notify(self, event, payload):
        self.events.append((event, payload))

    @property
    def names(self):
        return [event for event, _ in self.events]

    def payloads(self, name):
        return [payload for event, payload in self.events if event == name]


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    monkeypatch.setattr(SettingsManager, "settings_file", str(path))
    SettingsManager.invalidate_cache()
    yield path
    SettingsManager.invalidate_cache()
