"""Filter, calibrate, alias and pivot flat records into output rows."""

from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from io_connect.errors import InvalidRequestError
from io_connect.parsing.records import FlatRecord, coerce_record
from io_connect.utils.logging import get_logger
from io_connect.utils.time import ms_to_iso, resolve_timezone, timestamp_to_ms

logger = get_logger(__name__)

Calibration = Callable[[Any], Any]


class CleanOptions(BaseModel):
    """
    Options for ``clean``.

    Defaults: no filtering, no calibration, ISO timestamps in UTC, no
    aliasing, pivot on.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    sensor_filter: Optional[List[str]] = None
    device_filter: Optional[str] = None
    calibrate: bool = False
    calibration: Optional[Dict[str, Calibration]] = None
    unix: bool = False
    tz: str = "UTC"
    alias: bool = False
    aliases: Optional[Dict[str, str]] = None
    pivot: bool = True

    @field_validator("tz")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            resolve_timezone(value)
        except InvalidRequestError as e:
            raise ValueError(str(e)) from e
        return value


def _parse_param(params: List[Dict[str, Any]], name: str) -> Optional[float]:
    for param in params:
        if param.get("paramName") != name:
            continue
        try:
            return float(param.get("paramValue"))
        except (TypeError, ValueError):
            return None
    return None


def linear_calibration(metadata: Optional[Dict[str, Any]]) -> Dict[str, Calibration]:
    """
    Build per-sensor ``value * m + c`` transforms from device metadata.

    Results are clamped to the sensor's ``min``/``max`` params when present.
    Non-numeric readings pass through untouched.

    Args:
        metadata: Device metadata with a ``params`` mapping of sensor id to
            ``[{"paramName": ..., "paramValue": ...}]``

    Returns:
        Mapping of sensor id to transform
    """
    table: Dict[str, Calibration] = {}
    if not metadata:
        return table

    for sensor, params in (metadata.get("params") or {}).items():
        if not isinstance(params, list):
            continue
        m = _parse_param(params, "m")
        c = _parse_param(params, "c")
        if m is None and c is None:
            continue
        lower = _parse_param(params, "min")
        upper = _parse_param(params, "max")
        table[sensor] = _make_linear(1.0 if m is None else m, 0.0 if c is None else c, lower, upper)
    return table


def _make_linear(m: float, c: float, lower: Optional[float], upper: Optional[float]) -> Calibration:
    def _apply(value: Any) -> Any:
        try:
            result = float(value) * m + c
        except (TypeError, ValueError):
            return value
        if lower is not None:
            result = max(result, lower)
        if upper is not None:
            result = min(result, upper)
        return result

    return _apply


def aliases_from_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Map sensor ids to their display names."""
    if not metadata:
        return {}
    aliases = {}
    for sensor in metadata.get("sensors") or []:
        sensor_id = sensor.get("sensorId")
        name = sensor.get("sensorName")
        if sensor_id and name:
            aliases[sensor_id] = name
    return aliases


def _format_time(value: Any, options: CleanOptions) -> Any:
    try:
        ms = timestamp_to_ms(value)
    except ValueError:
        logger.debug(f"Leaving unparseable timestamp as-is: {value!r}")
        return value
    return ms if options.unix else ms_to_iso(ms, options.tz)


def _apply_aliases(row: Dict[str, Any], aliases: Dict[str, str]) -> Dict[str, Any]:
    return {aliases.get(key, key): value for key, value in row.items()}


def pivot_rows(records: Iterable[FlatRecord]) -> List[Dict[str, Any]]:
    """
    One row per distinct timestamp, in first-seen order.

    Sensors missing at a timestamp are omitted from that row.
    """
    grouped: Dict[Any, Dict[str, Any]] = {}
    for record in records:
        row = grouped.get(record.time)
        if row is None:
            row = {"timestamp": record.time}
            grouped[record.time] = row
        row[record.sensor] = record.value
    return list(grouped.values())


def clean(records: Iterable[Any], options: Optional[CleanOptions] = None) -> List[Dict[str, Any]]:
    """
    Turn flat records into output rows.

    Steps run in order: sensor filter, device filter, calibration, time
    formatting, pivot (when enabled), aliasing.

    Args:
        records: FlatRecords or dicts with time/sensor/value
        options: Cleaning options; defaults apply when omitted

    Returns:
        Pivoted rows, or flat rows when ``options.pivot`` is False
    """
    options = options or CleanOptions()
    rows = [coerce_record(item) for item in records]

    if options.sensor_filter:
        wanted = set(options.sensor_filter)
        rows = [r for r in rows if r.sensor in wanted]

    if options.device_filter:
        rows = [r for r in rows if r.device_id == options.device_filter]

    if options.calibrate and options.calibration:
        calibrated = []
        for r in rows:
            transform = options.calibration.get(r.sensor)
            calibrated.append(r.model_copy(update={"value": transform(r.value)}) if transform else r)
        rows = calibrated

    rows = [r.model_copy(update={"time": _format_time(r.time, options)}) for r in rows]

    output = pivot_rows(rows) if options.pivot else [r.to_row() for r in rows]

    if options.alias and options.aliases:
        output = [_apply_aliases(row, options.aliases) for row in output]
    return output
