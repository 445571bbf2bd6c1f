"""Flat per-(timestamp, sensor) record passed between normalizer and cleaner."""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FlatRecord(BaseModel):
    """One reading of one sensor at one instant."""

    model_config = ConfigDict(populate_by_name=True)

    time: Union[int, float, str]
    sensor: str
    value: Any = None
    device_id: Optional[str] = Field(default=None, alias="deviceId")

    @field_validator("sensor", "device_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        # Numeric sensor ids ("19") sometimes arrive as JSON numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"time": self.time, "sensor": self.sensor, "value": self.value}
        if self.device_id is not None:
            row["deviceId"] = self.device_id
        return row


def coerce_record(item: Any) -> FlatRecord:
    """Accept a FlatRecord or a plain dict; a dict may carry ``sensorId`` instead of ``sensor``."""
    if isinstance(item, FlatRecord):
        return item
    fields = dict(item)
    if not fields.get("sensor") and fields.get("sensorId"):
        fields["sensor"] = fields["sensorId"]
    if fields.get("time") is None and fields.get("timestamp") is not None:
        fields["time"] = fields["timestamp"]
    return FlatRecord.model_validate(fields)
