# Rev 0.4.0

"""Pytest fixtures for courierboard (Rev 0.4.0)"""
from __future__ import annotations
import json
import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
import requests
from PySide6.QtCore import QCoreApplication, QThreadPool

from courierboard.models.entities import Week
from courierboard.services.note_cache import NoteCache
from tests.fakes import InMemoryGateway


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture(autouse=True)
def _drain_workers(qapp):
    yield
    # no gateway job may outlive its test
    QThreadPool.globalInstance().waitForDone(5000)
    QCoreApplication.processEvents()


@pytest.fixture()
def weeks() -> list[Week]:
    return [
        Week(week_number=1, title="Kickoff", objectives=("Sign lease",)),
        Week(week_number=2, title="Licensing"),
        Week(week_number=3, title="First routes", risks=("Driver no-shows",)),
    ]


@pytest.fixture()
def gateway(weeks) -> InMemoryGateway:
    return InMemoryGateway(weeks)


@pytest.fixture()
def cache() -> NoteCache:
    return NoteCache()


class FakeHttp:
    """requests.Session stand-in: records calls, replays queued responses."""

    def __init__(self):
        self.calls = []
        self.responses = []

    def queue(self, status: int, body=None):
        self.responses.append(make_response(status, body))
        return self

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)


def make_response(status: int, body=None) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r._content = b"" if body is None else json.dumps(body).encode("utf-8")
    r.headers["Content-Type"] = "application/json"
    r.encoding = "utf-8"
    return r


@pytest.fixture()
def http() -> FakeHttp:
    return FakeHttp()
