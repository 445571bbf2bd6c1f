"""Tests for cursor-driven pagination."""

import asyncio

import pytest

from io_connect.config.loader import RetryPolicy
from io_connect.errors import RetryExhaustedError, TransportError
from io_connect.retrieval.cursor import Cursor, CursorForm, CursorWalker, PageRequest

URL = "https://data.example.com/api/apiLayer/getAllData"
FAST_POLICY = RetryPolicy(max_attempts=3, short_delay_ms=0, long_delay_ms=0)


def _template(form=CursorForm.TIME_RANGE):
    return PageRequest(url=URL, params={"device": "DEV_1", "sensor": "A,B"}, form=form, limit=2)


def _point(t, sensor="A", value=1):
    return {"time": t, "sensor": sensor, "value": value}


def test_walk_concatenates_pages_until_cursor_exhausted(transport, sleeper):
    transport.add(
        "getAllData",
        {"data": [_point(1), _point(2)], "cursor": {"start": 3, "end": 10}},
        {"data": [_point(3), _point(4)], "cursor": {"start": 5, "end": 10}},
        {"data": [_point(5)], "cursor": {"start": None, "end": 10}},
    )
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    items = asyncio.run(walker.collect(_template(), Cursor(start=1, end=10)))

    assert items == [_point(1), _point(2), _point(3), _point(4), _point(5)]
    assert len(transport.calls) == 3
    assert [c.params["sTime"] for c in transport.calls] == [1, 3, 5]
    assert all(c.params["eTime"] == 10 for c in transport.calls)
    assert transport.calls[0].params["cursor"] == "true"
    assert transport.calls[0].params["limit"] == 2
    assert transport.calls[0].params["device"] == "DEV_1"


def test_missing_cursor_ends_walk(transport, sleeper):
    transport.add("getAllData", {"data": [_point(1)]})
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    items = asyncio.run(walker.collect(_template(), Cursor(start=1, end=10)))

    assert items == [_point(1)]
    assert len(transport.calls) == 1


def test_exhausted_initial_cursor_issues_no_requests(transport, sleeper):
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    assert asyncio.run(walker.collect(_template(), Cursor(start=None, end=10))) == []
    assert transport.calls == []


def test_end_limit_form_walks_backwards(transport, sleeper):
    transport.add(
        "getAllData",
        {"data": [_point(9)], "cursor": {"end": 1700000005, "limit": 2}},
        {"data": [_point(5)], "cursor": {"end": 0}},
    )
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    items = asyncio.run(walker.collect(_template(CursorForm.END_LIMIT), Cursor(end=1700000010, limit=2)))

    assert items == [_point(9), _point(5)]
    assert [c.params["eTime"] for c in transport.calls] == [1700000010, 1700000005]
    assert transport.calls[0].params["lim"] == 2
    assert "sTime" not in transport.calls[0].params


def test_unsuccessful_body_is_retried(transport, sleeper):
    transport.add(
        "getAllData",
        {"success": False, "message": "influx busy"},
        {"data": [_point(1)], "cursor": None},
    )
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    items = asyncio.run(walker.collect(_template(), Cursor(start=1, end=10)))

    assert items == [_point(1)]
    assert len(transport.calls) == 2
    assert len(sleeper.calls) == 1


def test_errors_field_is_retried(transport, sleeper):
    transport.add(
        "getAllData",
        {"errors": ["timeout"], "data": []},
        {"data": [_point(1)]},
    )
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    assert asyncio.run(walker.collect(_template(), Cursor(start=1, end=10))) == [_point(1)]


def test_endless_cursor_stops_only_on_retry_exhaustion(transport, sleeper):
    transport.add(
        "getAllData",
        {"data": [_point(1)], "cursor": {"start": 2, "end": 10}},
        {"data": [_point(2)], "cursor": {"start": 3, "end": 10}},
        TransportError("gateway timeout", status=504),
    )
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    with pytest.raises(RetryExhaustedError) as exc_info:
        asyncio.run(walker.collect(_template(), Cursor(start=1, end=10)))

    assert exc_info.value.attempts == FAST_POLICY.max_attempts
    assert len(transport.calls) == 2 + FAST_POLICY.max_attempts


def test_non_object_body_is_malformed_and_retried(transport, sleeper):
    transport.add("getAllData", "<html>bad gateway</html>")
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    with pytest.raises(RetryExhaustedError) as exc_info:
        asyncio.run(walker.collect(_template(), Cursor(start=1, end=10)))

    assert type(exc_info.value.last_error).__name__ == "MalformedResponseError"


def test_walk_yields_pages_lazily(transport, sleeper):
    transport.add(
        "getAllData",
        {"data": [_point(1)], "cursor": {"start": 2, "end": 10}},
        {"data": [_point(2)], "cursor": None},
    )
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    async def _first_page():
        async for page in walker.walk(_template(), Cursor(start=1, end=10)):
            return page

    assert asyncio.run(_first_page()) == [_point(1)]
    assert len(transport.calls) == 1


def test_template_limit_is_sent_on_every_page(transport, sleeper):
    transport.add(
        "getAllData",
        {"data": [_point(1)], "cursor": {"start": 2, "end": 10, "limit": 99}},
        {"data": [_point(2)], "cursor": None},
    )
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)

    asyncio.run(walker.collect(_template(), Cursor(start=1, end=10)))

    assert [c.params["limit"] for c in transport.calls] == [2, 2]


def test_end_limit_walk_stops_below_floor(transport, sleeper):
    transport.add(
        "getAllData",
        {"data": [_point(9)], "cursor": {"end": 4}},
        {"data": [_point(4)], "cursor": None},
    )
    walker = CursorWalker(transport, FAST_POLICY, sleep=sleeper)
    template = PageRequest(url=URL, form=CursorForm.END_LIMIT, limit=2, floor=5)

    assert asyncio.run(walker.collect(template, Cursor(end=10))) == [_point(9)]
    assert len(transport.calls) == 1
