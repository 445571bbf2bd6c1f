"""Flatten the response shapes returned by the data API into FlatRecords."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from io_connect.parsing.records import FlatRecord
from io_connect.utils.logging import get_logger

logger = get_logger(__name__)


class PayloadShape(str, Enum):
    RECORDS = "records"  # [{time, sensor, value}, ...]
    SENSOR_SERIES = "sensor_series"  # {sensor: [{time, value}, ...]}
    SENSOR_SNAPSHOT = "sensor_snapshot"  # {sensor: {time, value}}
    UNKNOWN = "unknown"


def detect_shape(payload: Any) -> PayloadShape:
    """
    Classify a raw payload.

    A keyed object counts as a series if any block is a list, since
    series endpoints may leave empty sensors as ``{}`` or ``null``.
    """
    if isinstance(payload, list):
        return PayloadShape.RECORDS
    if isinstance(payload, dict) and payload:
        blocks = list(payload.values())
        if any(isinstance(block, list) for block in blocks):
            return PayloadShape.SENSOR_SERIES
        if any(isinstance(block, dict) for block in blocks):
            return PayloadShape.SENSOR_SNAPSHOT
    return PayloadShape.UNKNOWN


def _to_record(item: Any, sensor: Optional[str] = None) -> Optional[FlatRecord]:
    if not isinstance(item, dict):
        logger.debug(f"Skipping non-object datapoint: {item!r}")
        return None
    fields: Dict[str, Any] = dict(item)
    if not fields.get("sensor"):
        fields["sensor"] = fields.get("sensorId") or sensor
    if fields.get("time") is None and fields.get("timestamp") is not None:
        fields["time"] = fields["timestamp"]
    try:
        return FlatRecord.model_validate(fields)
    except ValidationError as e:
        logger.debug(f"Skipping malformed datapoint {item!r}: {e.error_count()} errors")
        return None


def normalize_records(payload: List[Any]) -> List[FlatRecord]:
    records = []
    for item in payload:
        record = _to_record(item)
        if record is not None:
            records.append(record)
    return records


def normalize_sensor_series(payload: Dict[str, Any]) -> List[FlatRecord]:
    records: List[FlatRecord] = []
    for sensor, block in payload.items():
        if isinstance(block, dict):
            # Single-point block mixed into a series payload
            items = [block]
        elif isinstance(block, list):
            items = block
        else:
            if block is not None:
                logger.warning(f"Ignoring malformed block for sensor {sensor}: {type(block).__name__}")
            continue
        for item in items:
            record = _to_record(item, sensor=str(sensor))
            if record is not None:
                records.append(record)
    return records


def normalize_sensor_snapshot(payload: Dict[str, Any]) -> List[FlatRecord]:
    records: List[FlatRecord] = []
    for sensor, block in payload.items():
        if not isinstance(block, dict):
            if block is not None:
                logger.warning(f"Ignoring malformed block for sensor {sensor}: {type(block).__name__}")
            continue
        record = _to_record(block, sensor=str(sensor))
        if record is not None:
            records.append(record)
    return records


def normalize(payload: Any) -> List[FlatRecord]:
    """
    Convert any supported raw payload to a flat record list.

    Unsupported shapes yield an empty list so one bad payload does not
    abort an otherwise successful retrieval.

    Args:
        payload: Decoded ``data`` field of an API response

    Returns:
        List of FlatRecord
    """
    shape = detect_shape(payload)
    if shape == PayloadShape.RECORDS:
        return normalize_records(payload)
    if shape == PayloadShape.SENSOR_SERIES:
        return normalize_sensor_series(payload)
    if shape == PayloadShape.SENSOR_SNAPSHOT:
        return normalize_sensor_snapshot(payload)
    if payload:
        logger.warning(f"Unrecognized payload shape {type(payload).__name__}; treating as no data")
    return []
