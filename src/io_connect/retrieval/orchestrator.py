"""Run cursor walks for a device's sensors and merge them into flat records."""

import asyncio
from datetime import datetime
from typing import Any, Callable, List, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field

from io_connect.config.loader import ConnectSettings, RetrievalMode
from io_connect.constants import GET_DP_URL, INFLUXDB_URL, build_url
from io_connect.errors import DeviceNotFoundError, InvalidTimeRangeError, NoSensorDataError
from io_connect.parsing.normalizer import normalize
from io_connect.parsing.records import FlatRecord
from io_connect.retrieval.cursor import Cursor, CursorForm, CursorWalker, PageRequest
from io_connect.retrieval.retry import Sleep
from io_connect.retrieval.transport import Transport
from io_connect.utils.logging import get_logger, log_timing
from io_connect.utils.time import TimeInput, timestamp_to_ms, to_epoch_ms

logger = get_logger(__name__)

Clock = Callable[[TimeInput], int]


class SensorSource(Protocol):
    async def get_sensors(self, device_id: str, on_prem: Optional[bool] = None) -> List[str]:
        ...

    async def device_exists(self, device_id: str, on_prem: Optional[bool] = None) -> bool:
        ...


class TimeRange(BaseModel):
    start_ms: int
    end_ms: int


class RetrievalRequest(BaseModel):
    """Parameters of one retrieval call."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    device_id: str
    sensor_list: Optional[List[str]] = None
    start_time: Union[int, float, str, datetime, None] = None
    end_time: Union[int, float, str, datetime, None] = None
    limit: Optional[int] = Field(default=None, ge=1)
    on_prem: Optional[bool] = None
    mode: Optional[RetrievalMode] = None
    verify_device: Optional[bool] = None


def build_time_range(start_ms: int, end_ms: int) -> TimeRange:
    if start_ms > end_ms:
        raise InvalidTimeRangeError(f"Invalid time range: start ({start_ms}) > end ({end_ms})")
    return TimeRange(start_ms=start_ms, end_ms=end_ms)


def _before(record: FlatRecord, start_ms: int) -> bool:
    try:
        return timestamp_to_ms(record.time) < start_ms
    except ValueError:
        return False


class MultiSensorRetriever:
    """
    Retrieves raw datapoints for one device.

    Batched mode walks every sensor in one cursor stream; per-sensor mode
    walks each sensor on its own, one after another.
    """

    def __init__(
        self,
        transport: Transport,
        sensors: SensorSource,
        settings: ConnectSettings,
        *,
        clock: Optional[Clock] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.transport = transport
        self.sensors = sensors
        self.settings = settings
        self.clock: Clock = clock or (lambda value: to_epoch_ms(value, settings.tz))
        self.sleep = sleep

    def resolve_time_range(self, request: RetrievalRequest, mode: RetrievalMode) -> TimeRange:
        # Per-sensor walks only need an end; the server decides how far back to go
        start_ms: Optional[int] = None
        if request.start_time is not None or mode == RetrievalMode.BATCHED:
            start_ms = self.clock(request.start_time)
        end_ms = self.clock(request.end_time)
        return build_time_range(end_ms if start_ms is None else start_ms, end_ms)

    async def resolve_sensors(self, request: RetrievalRequest) -> List[str]:
        if request.sensor_list:
            return list(request.sensor_list)
        sensor_list = await self.sensors.get_sensors(request.device_id, request.on_prem)
        if not sensor_list:
            raise NoSensorDataError("No sensor data available.")
        return sensor_list

    def _on_prem(self, request: RetrievalRequest) -> bool:
        return self.settings.on_prem if request.on_prem is None else request.on_prem

    async def retrieve(self, request: RetrievalRequest) -> List[FlatRecord]:
        """
        Fetch every datapoint for the request's sensors and time range.

        Raises:
            InvalidTimeRangeError, InvalidTimeUnitError: Before any request
            DeviceNotFoundError: If the device is not in the account
            NoSensorDataError: If no sensors can be resolved
            RetryExhaustedError: If any sensor's walk fails for good
        """
        mode = request.mode or self.settings.retrieval.mode
        time_range = self.resolve_time_range(request, mode)

        verify = self.settings.retrieval.verify_device if request.verify_device is None else request.verify_device
        if verify and not await self.sensors.device_exists(request.device_id, request.on_prem):
            raise DeviceNotFoundError(request.device_id)

        sensor_list = await self.resolve_sensors(request)

        if mode == RetrievalMode.BATCHED:
            pages = await self._retrieve_batched(request, sensor_list, time_range)
        else:
            pages = await self._retrieve_per_sensor(request, sensor_list, time_range)

        records: List[FlatRecord] = []
        for page in pages:
            records.extend(normalize(page))
        if mode == RetrievalMode.PER_SENSOR and request.start_time is not None:
            records = [r for r in records if not _before(r, time_range.start_ms)]
        logger.info(f"Retrieved {len(records)} records for {request.device_id} ({mode.value})")
        return records

    async def _retrieve_batched(
        self,
        request: RetrievalRequest,
        sensor_list: List[str],
        time_range: TimeRange,
    ) -> List[Any]:
        url = build_url(INFLUXDB_URL, on_prem=self._on_prem(request), data_url=self.settings.data_url)
        template = PageRequest(
            url=url,
            headers={"userID": self.settings.user_id},
            params={"device": request.device_id, "sensor": ",".join(sensor_list)},
            form=CursorForm.TIME_RANGE,
            limit=request.limit or self.settings.retrieval.cursor_limit,
        )
        walker = CursorWalker(self.transport, self.settings.retry.influx, sleep=self.sleep)
        logger.info(f"Polling data for {request.device_id} ({len(sensor_list)} sensors)")
        with log_timing(logger, f"API {url} walk time:", self.settings.log_time):
            return await self._collect_pages(
                walker, template, Cursor(start=time_range.start_ms, end=time_range.end_ms)
            )

    async def _retrieve_per_sensor(
        self,
        request: RetrievalRequest,
        sensor_list: List[str],
        time_range: TimeRange,
    ) -> List[Any]:
        url = build_url(GET_DP_URL, on_prem=self._on_prem(request), data_url=self.settings.data_url)
        walker = CursorWalker(self.transport, self.settings.retry.default, sleep=self.sleep)
        limit = request.limit or self.settings.retrieval.cursor_limit
        floor = time_range.start_ms // 1000 if request.start_time is not None else None
        pages: List[Any] = []
        for sensor in sensor_list:
            template = PageRequest(
                url=url,
                headers={"userID": self.settings.user_id},
                params={"device": request.device_id, "sensor": sensor},
                form=CursorForm.END_LIMIT,
                limit=limit,
                floor=floor,
            )
            # The limited-data endpoint takes its end time in seconds
            initial = Cursor(end=time_range.end_ms // 1000, limit=limit)
            with log_timing(logger, f"API {url} walk time for {sensor}:", self.settings.log_time):
                sensor_pages = await self._collect_pages(walker, template, initial)
            logger.debug(f"Sensor {sensor}: {len(sensor_pages)} pages")
            pages.extend(sensor_pages)
        return pages

    @staticmethod
    async def _collect_pages(walker: CursorWalker, template: PageRequest, initial: Cursor) -> List[Any]:
        pages = []
        async for page in walker.walk(template, initial):
            pages.append(page)
        return pages
