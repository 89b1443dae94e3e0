"""
Shared fixtures: a fake HTTP session standing in for the requests module.
"""
import json
import threading

import pytest

from api._emis import DETAIL_PATH, LOOKUP_PATH
from api._helpers import EmisConfig


class FakeResponse:
    def __init__(self, status_code=200, payload=None, bad_json=False):
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """Records every request and answers it through ``responder``."""

    def __init__(self, responder):
        self.responder = responder
        self.calls = []
        self._lock = threading.Lock()

    def request(self, method, url, headers=None, data=None, timeout=None):
        with self._lock:
            self.calls.append({
                "method": method,
                "url": url,
                "headers": headers,
                "data": data,
                "timeout": timeout,
            })
        return self.responder(method, url, data)


def portal(roster, details=None):
    """
    Build a FakeSession emulating the two EMIS endpoints. ``roster`` is the
    lookup payload (or a FakeResponse); ``details`` maps EmpText → payload
    (or FakeResponse).
    """
    details = details or {}

    def respond(method, url, data):
        if url.endswith(LOOKUP_PATH):
            return roster if isinstance(roster, FakeResponse) else FakeResponse(200, roster)
        if url.endswith(DETAIL_PATH):
            emp_id = json.loads(data)["EmpText"]
            detail = details.get(emp_id, {})
            return detail if isinstance(detail, FakeResponse) else FakeResponse(200, detail)
        return FakeResponse(404, None)

    return FakeSession(respond)


@pytest.fixture
def config():
    return EmisConfig(base_url="http://emis.test", developer="Test Dev")
