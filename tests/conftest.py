"""Pytest configuration and fixtures."""

from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from io_connect.api.data_access import DataAccess
from io_connect.config.loader import ConnectSettings
from io_connect.retrieval.transport import TransportResponse


class FakeTransport:
    """
    Scripted transport.

    Each route maps a URL fragment to a queue of bodies or exceptions. The
    last item of a queue repeats once the others are used up.
    """

    def __init__(self):
        self.routes: Dict[str, List[Any]] = {}
        self.calls: List[SimpleNamespace] = []

    def add(self, url_fragment: str, *responses: Any) -> "FakeTransport":
        self.routes.setdefault(url_fragment, []).extend(responses)
        return self

    def calls_to(self, url_fragment: str) -> List[SimpleNamespace]:
        return [call for call in self.calls if url_fragment in call.url]

    async def request(self, method, url, *, headers=None, params=None, json=None):
        self.calls.append(
            SimpleNamespace(method=method, url=url, headers=headers, params=dict(params or {}), json=json)
        )
        for fragment, queue in self.routes.items():
            if fragment not in url:
                continue
            if not queue:
                raise AssertionError(f"No scripted response left for {url}")
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, BaseException):
                raise item
            return TransportResponse(status=200, data=item)
        raise AssertionError(f"Unexpected request {method} {url}")


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def settings():
    return ConnectSettings(user_id="user-1", data_url="data.example.com")


@pytest.fixture
def client(settings, transport, sleeper):
    return DataAccess(settings=settings, transport=transport, sleep=sleeper)


@pytest.fixture
def devices_route(transport):
    """Account with devices DEV_1 and DEV_2."""
    transport.add(
        "allDevices",
        {"data": [{"devID": "DEV_1", "devTypeID": "PLC"}, {"devID": "DEV_2", "devTypeID": "PLC"}]},
    )
    return transport
