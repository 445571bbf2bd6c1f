"""Tests for multi-sensor retrieval."""

import asyncio

import pytest

from io_connect.config.loader import RetrievalMode
from io_connect.errors import (
    DeviceNotFoundError,
    InvalidTimeRangeError,
    InvalidTimeUnitError,
    NoSensorDataError,
    RetryExhaustedError,
    TransportError,
)
from io_connect.retrieval.orchestrator import RetrievalRequest

START = 1686744000000
END = 1686747600000

METADATA = {"data": {"sensors": [{"sensorId": "A", "sensorName": "Voltage"}, {"sensorId": "B"}]}}


def _retrieve(client, **fields):
    fields.setdefault("device_id", "DEV_1")
    return asyncio.run(client.retriever.retrieve(RetrievalRequest(**fields)))


def test_inverted_range_fails_before_any_request(client, transport):
    with pytest.raises(InvalidTimeRangeError):
        _retrieve(client, sensor_list=["A"], start_time=END, end_time=START)

    assert transport.calls == []


def test_seconds_input_fails_before_any_request(client, transport):
    with pytest.raises(InvalidTimeUnitError):
        _retrieve(client, sensor_list=["A"], start_time=1686744000, end_time=END)

    assert transport.calls == []


def test_unknown_device_is_rejected(client, devices_route):
    with pytest.raises(DeviceNotFoundError, match="Device MISSING not added in account"):
        _retrieve(client, device_id="MISSING", sensor_list=["A"], start_time=START, end_time=END)

    assert devices_route.calls_to("getAllData") == []


def test_device_check_can_be_skipped(client, transport):
    transport.add("getAllData", {"data": [], "cursor": None})

    assert _retrieve(
        client, sensor_list=["A"], start_time=START, end_time=END, verify_device=False
    ) == []
    assert transport.calls_to("allDevices") == []


def test_batched_walk_sends_all_sensors_in_one_stream(client, devices_route):
    devices_route.add(
        "getAllData",
        {"data": [{"time": START, "sensor": "A", "value": 1}], "cursor": {"start": START + 1, "end": END}},
        {"data": [{"time": START + 1, "sensor": "B", "value": 2}], "cursor": {"start": None, "end": END}},
    )

    records = _retrieve(client, sensor_list=["A", "B"], start_time=START, end_time=END)

    assert [(r.time, r.sensor, r.value) for r in records] == [(START, "A", 1), (START + 1, "B", 2)]
    calls = devices_route.calls_to("getAllData")
    assert len(calls) == 2
    assert calls[0].url == "https://data.example.com/api/apiLayer/getAllData"
    assert calls[0].headers == {"userID": "user-1"}
    assert calls[0].params["sensor"] == "A,B"
    assert calls[0].params["sTime"] == START
    assert calls[0].params["eTime"] == END
    assert calls[0].params["limit"] == 1000
    assert calls[1].params["sTime"] == START + 1


def test_on_prem_switches_to_http(client, transport):
    transport.add("getAllData", {"data": []})

    _retrieve(client, sensor_list=["A"], start_time=START, end_time=END, on_prem=True, verify_device=False)

    assert transport.calls[0].url.startswith("http://")


def test_per_sensor_walks_each_sensor_in_turn(client, devices_route):
    devices_route.add(
        "getLimitedDataMultipleSensors",
        {"data": [{"time": END, "value": 1, "sensor": "A"}], "cursor": {"end": 1686746000}},
        {"data": [{"time": END - 1000, "value": 2, "sensor": "A"}], "cursor": {"end": None}},
        {"data": [{"time": END, "value": 3, "sensor": "B"}], "cursor": None},
    )

    records = _retrieve(
        client,
        sensor_list=["A", "B"],
        end_time=END,
        limit=50,
        mode=RetrievalMode.PER_SENSOR,
    )

    assert [(r.sensor, r.value) for r in records] == [("A", 1), ("A", 2), ("B", 3)]
    calls = devices_route.calls_to("getLimitedDataMultipleSensors")
    assert [c.params["sensor"] for c in calls] == ["A", "A", "B"]
    # End time travels in seconds on this endpoint
    assert calls[0].params["eTime"] == END // 1000
    assert calls[1].params["eTime"] == 1686746000
    assert calls[2].params["eTime"] == END // 1000
    assert all(c.params["lim"] == 50 for c in calls)


def test_mode_defaults_to_settings(client, settings, devices_route):
    settings.retrieval.mode = RetrievalMode.PER_SENSOR
    devices_route.add("getLimitedDataMultipleSensors", {"data": [], "cursor": None})

    _retrieve(client, sensor_list=["A"], end_time=END)

    assert len(devices_route.calls_to("getLimitedDataMultipleSensors")) == 1
    assert devices_route.calls_to("getAllData") == []


def test_sensors_default_to_device_metadata(client, devices_route):
    devices_route.add("metaData/device/DEV_1", METADATA)
    devices_route.add("getAllData", {"data": []})

    _retrieve(client, start_time=START, end_time=END)

    assert devices_route.calls_to("getAllData")[0].params["sensor"] == "A,B"


def test_device_without_sensors_raises(client, devices_route):
    devices_route.add("metaData/device/DEV_1", {"data": {"sensors": [], "params": {}}})

    with pytest.raises(NoSensorDataError):
        _retrieve(client, start_time=START, end_time=END)


def test_one_failing_sensor_fails_the_whole_call(client, devices_route, sleeper):
    devices_route.add(
        "getLimitedDataMultipleSensors",
        {"data": [{"time": END, "value": 1, "sensor": "A"}], "cursor": None},
        TransportError("bad gateway", status=502),
    )

    with pytest.raises(RetryExhaustedError):
        _retrieve(client, sensor_list=["A", "B"], end_time=END, mode=RetrievalMode.PER_SENSOR)

    policy = client.settings.retry.default
    assert len(devices_route.calls_to("getLimitedDataMultipleSensors")) == 1 + policy.max_attempts
    assert len(sleeper.calls) == policy.max_attempts - 1


def test_batched_walk_uses_influx_policy(client, devices_route, sleeper):
    devices_route.add("getAllData", TransportError("timeout"))

    with pytest.raises(RetryExhaustedError) as exc_info:
        _retrieve(client, sensor_list=["A"], start_time=START, end_time=END)

    assert exc_info.value.attempts == client.settings.retry.influx.max_attempts
    assert sleeper.calls[0] == 2.0
    assert sleeper.calls[-1] == 10.0


def test_per_sensor_walk_stops_at_start_and_drops_older_points(client, devices_route):
    devices_route.add(
        "getLimitedDataMultipleSensors",
        {"data": [{"time": END, "value": 1, "sensor": "A"}], "cursor": {"end": START // 1000 + 600}},
        {
            "data": [
                {"time": START + 1000, "value": 2, "sensor": "A"},
                {"time": START - 86400000, "value": 3, "sensor": "A"},
            ],
            "cursor": {"end": (START - 86400000) // 1000},
        },
        {"data": [{"time": START - 2 * 86400000, "value": 4, "sensor": "A"}], "cursor": None},
    )

    records = _retrieve(
        client, sensor_list=["A"], start_time=START, end_time=END, mode=RetrievalMode.PER_SENSOR
    )

    assert [r.value for r in records] == [1, 2]
    assert len(devices_route.calls_to("getLimitedDataMultipleSensors")) == 2
