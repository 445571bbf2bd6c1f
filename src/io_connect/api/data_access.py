"""DataAccess: async client for the IoT data service."""

import asyncio
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from io_connect.config.loader import (
    ConnectSettings,
    RetrievalMode,
    RetryPolicy,
    build_settings,
    load_config,
)
from io_connect.constants import (
    AGGREGATE_OPERATIONS,
    CLUSTER_AGGREGATION,
    CLUSTER_TYPES,
    CONSUMPTION_URL,
    CURSOR_BATCHES_LIMIT,
    FILTER_OPERATORS,
    GET_CURSOR_BATCHES_URL,
    GET_FILTERED_OPERATION_DATA,
    GET_FIRST_DP,
    GET_LOAD_ENTITIES,
    LOAD_ENTITIES_PAGE_SIZE,
    TRIGGER_URL,
    build_url,
)
from io_connect.errors import (
    ApplicationError,
    DeviceNotFoundError,
    InvalidRequestError,
    IoConnectError,
    MalformedResponseError,
    NoSensorDataError,
)
from io_connect.api.models import RetrievalResult, RetrievalStatus
from io_connect.parsing.cleaner import (
    CleanOptions,
    aliases_from_metadata,
    clean,
    linear_calibration,
)
from io_connect.parsing.normalizer import normalize
from io_connect.retrieval.cursor import check_application_status
from io_connect.retrieval.metadata import MetadataProvider, sensors_from_metadata
from io_connect.retrieval.orchestrator import (
    Clock,
    MultiSensorRetriever,
    RetrievalRequest,
    TimeRange,
    build_time_range,
)
from io_connect.retrieval.retry import Sleep, with_retry
from io_connect.retrieval.transport import RequestsTransport, Transport
from io_connect.utils.logging import format_exception, get_logger, log_timing
from io_connect.utils.time import TimeInput, ms_to_iso, timestamp_to_ms, to_epoch_ms, utc_now_z

logger = get_logger(__name__)


class DataAccess:
    """
    Read sensor data, device metadata and cluster aggregates for one user.

    All network methods are coroutines. On any failure they log one error
    line and return an empty value (``[]`` or ``{}``) instead of raising.
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        data_url: Optional[str] = None,
        on_prem: bool = False,
        tz: str = "UTC",
        log_time: bool = False,
        *,
        settings: Optional[ConnectSettings] = None,
        transport: Optional[Transport] = None,
        clock: Optional[Clock] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            user_id: Account user id, sent as the ``userID`` header
            data_url: Host of the data service
            on_prem: Use http instead of https by default
            tz: Timezone for ISO output and naive time inputs
            log_time: Log request timings
            settings: Pre-built settings; overrides the individual arguments
            transport: HTTP transport; defaults to a requests-backed one
            clock: Time coercion function; defaults to ``to_epoch_ms``
            sleep: Awaitable used for retry pauses
        """
        if settings is None:
            settings = ConnectSettings(
                user_id=user_id or "",
                data_url=data_url or "",
                on_prem=on_prem,
                tz=tz,
                log_time=log_time,
            )
        self.settings = settings
        self._owns_transport = transport is None
        self.transport = transport or RequestsTransport(timeout=settings.timeout_seconds)
        self.sleep = sleep
        self.clock: Clock = clock or (lambda value: to_epoch_ms(value, settings.tz))
        self.metadata = MetadataProvider(self.transport, settings, sleep=sleep)
        self.retriever = MultiSensorRetriever(
            self.transport, self.metadata, settings, clock=self.clock, sleep=sleep
        )

    @classmethod
    def from_config(cls, path: Optional[Path] = None, **kwargs: Any) -> "DataAccess":
        """Build a client from a YAML config file."""
        return cls(settings=build_settings(load_config(path)), **kwargs)

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_transport and isinstance(self.transport, RequestsTransport):
            self.transport.close()

    async def __aenter__(self) -> "DataAccess":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    # ---------------------------
    # Helpers
    # ---------------------------

    def _on_prem(self, on_prem: Optional[bool]) -> bool:
        return self.settings.on_prem if on_prem is None else on_prem

    def _url(self, template: str, on_prem: Optional[bool], **fields: str) -> str:
        return build_url(template, on_prem=self._on_prem(on_prem), data_url=self.settings.data_url, **fields)

    def _headers(self) -> Dict[str, str]:
        return {"userID": self.settings.user_id}

    def _time_range(self, start_time: TimeInput, end_time: TimeInput) -> TimeRange:
        return build_time_range(self.clock(start_time), self.clock(end_time))

    def _log_failure(self, exc: BaseException, context: str) -> None:
        if isinstance(exc, IoConnectError):
            logger.error(f"{format_exception(exc)} ({context})")
        else:
            logger.error(f"{format_exception(exc)} ({context})", exc_info=True)

    async def _verify_device(self, device_id: str, on_prem: Optional[bool]) -> None:
        if not await self.metadata.device_exists(device_id, on_prem):
            raise DeviceNotFoundError(device_id)

    async def _optional_metadata(self, device_id: str, on_prem: Optional[bool]) -> Optional[Dict[str, Any]]:
        """Metadata used only for calibration/aliases; failure degrades to none."""
        try:
            return await self.metadata.get_device_metadata(device_id, on_prem)
        except IoConnectError as e:
            logger.warning(f"Metadata for {device_id} unavailable, skipping calibration/aliases: {e}")
            return None

    def _options_from_metadata(
        self,
        metadata: Optional[Dict[str, Any]],
        *,
        cal: bool,
        alias: bool,
        unix: bool,
        pivot: bool,
        sensor_list: Optional[List[str]] = None,
        device_filter: Optional[str] = None,
    ) -> CleanOptions:
        return CleanOptions(
            sensor_filter=sensor_list,
            device_filter=device_filter,
            calibrate=cal,
            calibration=linear_calibration(metadata) if cal else None,
            unix=unix,
            tz=self.settings.tz,
            alias=alias,
            aliases=aliases_from_metadata(metadata) if alias else None,
            pivot=pivot,
        )

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        policy: RetryPolicy,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        async def _operation() -> Dict[str, Any]:
            with log_timing(logger, f"API {url} response time:", self.settings.log_time):
                response = await self.transport.request(
                    method, url, headers=headers or self._headers(), params=params, json=json
                )
            return check_application_status(response.data, url)

        return await with_retry(_operation, policy, sleep=self.sleep, description=url)

    # ---------------------------
    # Metadata
    # ---------------------------

    async def get_user_info(self, on_prem: Optional[bool] = None) -> Dict[str, Any]:
        """
        Fetch the account's user record.

        Returns:
            User info dict, or {} on error
        """
        try:
            return await self.metadata.get_user_info(on_prem)
        except Exception as e:
            self._log_failure(e, "get_user_info")
            return {}

    async def get_device_details(self, on_prem: Optional[bool] = None) -> List[Dict[str, Any]]:
        """
        List the devices added to the account.

        Returns:
            List of ``{"devID", "devTypeID"}`` dicts, or [] on error
        """
        try:
            return await self.metadata.get_device_details(on_prem)
        except Exception as e:
            self._log_failure(e, "get_device_details")
            return []

    async def get_device_metadata(self, device_id: str, on_prem: Optional[bool] = None) -> Dict[str, Any]:
        """
        Fetch one device's metadata (sensors, params, units, properties).

        Returns:
            Metadata dict, or {} on error
        """
        try:
            return await self.metadata.get_device_metadata(device_id, on_prem)
        except Exception as e:
            self._log_failure(e, f"get_device_metadata {device_id}")
            return {}

    def time_to_unix(self, value: TimeInput = None) -> int:
        """
        Convert a time value to epoch milliseconds in the client's timezone.

        Raises:
            InvalidTimeUnitError: If a numeric value is in seconds
        """
        return self.clock(value)

    def get_cleaned_table(
        self,
        data: List[Any],
        *,
        alias: bool = False,
        cal: bool = False,
        device_id: Optional[str] = None,
        sensor_list: Optional[List[str]] = None,
        unix: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
        pivot_table: bool = True,
    ) -> List[Dict[str, Any]]:
        """Clean raw datapoints with options derived from device metadata."""
        options = self._options_from_metadata(
            metadata,
            cal=cal,
            alias=alias,
            unix=unix,
            pivot=pivot_table,
            sensor_list=sensor_list,
            device_filter=device_id,
        )
        return clean(data, options)

    # ---------------------------
    # Datapoints
    # ---------------------------

    async def query(
        self,
        request: RetrievalRequest,
        options: Optional[CleanOptions] = None,
        *,
        calibrate_from_metadata: bool = False,
        alias_from_metadata: bool = False,
    ) -> RetrievalResult:
        """
        Retrieve and clean datapoints, reporting the outcome explicitly.

        Args:
            request: Device, sensors, time range and retrieval mode
            options: Cleaning options; defaults to pivoted ISO rows
            calibrate_from_metadata: Fill ``options.calibration`` from device params
            alias_from_metadata: Fill ``options.aliases`` from sensor names

        Returns:
            RetrievalResult with status SUCCESS, EMPTY or FAILURE
        """
        options = options or CleanOptions(tz=self.settings.tz)
        fetched_at_utc = utc_now_z()
        started = time.monotonic()
        try:
            records = await self.retriever.retrieve(request)
            if records and (calibrate_from_metadata or alias_from_metadata):
                metadata = await self._optional_metadata(request.device_id, request.on_prem)
                update: Dict[str, Any] = {}
                if calibrate_from_metadata:
                    update["calibration"] = linear_calibration(metadata)
                if alias_from_metadata:
                    update["aliases"] = aliases_from_metadata(metadata)
                options = options.model_copy(update=update)
            rows = clean(records, options) if records else []
        except Exception as e:
            self._log_failure(e, f"query {request.device_id}")
            return RetrievalResult(
                device_id=request.device_id,
                status=RetrievalStatus.FAILURE,
                fetched_at_utc=fetched_at_utc,
                error=str(e),
                error_kind=type(e).__name__,
                duration_seconds=time.monotonic() - started,
            )

        return RetrievalResult(
            device_id=request.device_id,
            status=RetrievalStatus.SUCCESS if rows else RetrievalStatus.EMPTY,
            fetched_at_utc=fetched_at_utc,
            rows=rows,
            duration_seconds=time.monotonic() - started,
        )

    async def data_query(
        self,
        device_id: str,
        sensor_list: Optional[List[str]] = None,
        start_time: TimeInput = None,
        end_time: TimeInput = None,
        cal: bool = True,
        alias: bool = False,
        unix: bool = False,
        on_prem: Optional[bool] = None,
        mode: Optional[RetrievalMode] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query a device's sensors over a time range, one row per timestamp.

        Example:
            >>> await client.data_query("APRPLC_A3", ["D19"], 1738408857000, 1738409397000)
            [{"timestamp": "2025-02-01T11:21:49.000Z", "D19": "2.19"}, ...]

        Returns:
            Pivoted rows, or [] on error
        """
        try:
            request = RetrievalRequest(
                device_id=device_id,
                sensor_list=sensor_list,
                start_time=start_time,
                end_time=end_time,
                on_prem=on_prem,
                mode=mode,
            )
            options = CleanOptions(
                sensor_filter=sensor_list, calibrate=cal, unix=unix, tz=self.settings.tz, alias=alias
            )
        except Exception as e:
            self._log_failure(e, f"data_query {device_id}")
            return []
        result = await self.query(
            request, options, calibrate_from_metadata=cal, alias_from_metadata=alias
        )
        return result.rows

    async def get_dp(
        self,
        device_id: str,
        sensor_list: Optional[List[str]] = None,
        n: int = 1,
        cal: bool = True,
        end_time: TimeInput = None,
        alias: bool = False,
        unix: bool = False,
        on_prem: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch datapoints up to ``end_time``, walking each sensor separately.

        Args:
            n: Page size of each cursor step (must be >= 1)

        Returns:
            Flat ``{"time", "sensor", "value"}`` rows, or [] on error
        """
        try:
            if n < 1:
                raise InvalidRequestError("Parameter 'n' must be >= 1")
            request = RetrievalRequest(
                device_id=device_id,
                sensor_list=sensor_list,
                end_time=end_time,
                limit=n,
                on_prem=on_prem,
                mode=RetrievalMode.PER_SENSOR,
            )
            options = CleanOptions(
                sensor_filter=sensor_list, calibrate=cal, unix=unix, tz=self.settings.tz, alias=alias, pivot=False
            )
        except Exception as e:
            self._log_failure(e, f"get_dp {device_id}")
            return []
        result = await self.query(
            request, options, calibrate_from_metadata=cal, alias_from_metadata=alias
        )
        return result.rows

    async def get_first_dp(
        self,
        device_id: str,
        sensor_list: Optional[List[str]] = None,
        cal: bool = True,
        start_time: TimeInput = None,
        n: int = 1,
        alias: bool = False,
        unix: bool = False,
        on_prem: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch the first datapoint(s) of each sensor at or after ``start_time``.

        Returns:
            Flat rows, or [] on error
        """
        try:
            if n < 1:
                raise InvalidRequestError("Parameter 'n' must be >= 1")
            start_ms = self.clock(start_time)
            await self._verify_device(device_id, on_prem)

            metadata = None
            if not sensor_list:
                metadata = await self.metadata.get_device_metadata(device_id, on_prem)
                sensor_list = sensors_from_metadata(metadata)
                if not sensor_list:
                    raise NoSensorDataError("No sensor data available.")
            elif cal or alias:
                metadata = await self._optional_metadata(device_id, on_prem)

            url = self._url(GET_FIRST_DP, on_prem)
            params = {
                "device": device_id,
                "sensor": ",".join(sensor_list),
                "time": start_ms // 1000,
                "n": n,
            }
            with log_timing(logger, f"API {url} response time:", self.settings.log_time):
                response = await self.transport.request("GET", url, headers=self._headers(), params=params)

            body = response.data
            if isinstance(body, list):
                payload = body[0] if body else {}
            else:
                payload = check_application_status(body, url).get("data", body)

            records = normalize(payload)
            if not records:
                return []
            options = self._options_from_metadata(
                metadata, cal=cal, alias=alias, unix=unix, pivot=False, sensor_list=sensor_list
            )
            return clean(records, options)
        except Exception as e:
            self._log_failure(e, f"get_first_dp {device_id}")
            return []

    async def get_cursor_batches(
        self,
        device_id: str,
        start_time: TimeInput,
        end_time: TimeInput,
        sensor_list: Optional[List[str]] = None,
        on_prem: Optional[bool] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Ask the server how a time range splits into cursor batches.

        Example:
            >>> await client.get_cursor_batches("APRPLC_A1", 1747294380000, 1747380780000, ["D19"])
            {"counts": [{"time": "...", "count": 2739}], "timeStamps": [...]}

        Returns:
            Batch summary dict, or {} on error
        """
        try:
            time_range = self._time_range(start_time, end_time)
            if not sensor_list:
                if metadata is None:
                    metadata = await self.metadata.get_device_metadata(device_id, on_prem)
                sensor_list = sensors_from_metadata(metadata)
            if not sensor_list:
                raise NoSensorDataError("No sensor data available.")

            url = self._url(GET_CURSOR_BATCHES_URL, on_prem)
            params = {
                "device": device_id,
                "sensor": ",".join(sensor_list),
                # This endpoint takes nanoseconds
                "sTime": time_range.start_ms * 1_000_000,
                "eTime": time_range.end_ms * 1_000_000,
                "limit": CURSOR_BATCHES_LIMIT,
            }
            with log_timing(logger, f"API {url} response time:", self.settings.log_time):
                response = await self.transport.request("GET", url, headers=self._headers(), params=params)
            body = check_application_status(response.data, url)
            return body.get("data") or {}
        except Exception as e:
            self._log_failure(e, f"get_cursor_batches {device_id}")
            return {}

    async def fetch_consumption(
        self,
        device_id: str,
        sensor: str,
        interval: Optional[int] = None,
        start_time: TimeInput = None,
        end_time: TimeInput = None,
        unix: bool = False,
        on_prem: Optional[bool] = None,
        disable_interval: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Fetch start/end consumption readings of one sensor.

        Args:
            interval: Custom aggregation interval in seconds (ignored when
                ``disable_interval`` is set)

        Returns:
            ``[{"time", "value"}, ...]``, or [] on error
        """
        try:
            time_range = self._time_range(start_time, end_time)
            url = self._url(CONSUMPTION_URL, on_prem)
            params: Dict[str, Any] = {
                "device": device_id,
                "sensor": sensor,
                "startTime": time_range.start_ms,
                "endTime": time_range.end_ms,
                "disableThreshold": str(disable_interval).lower(),
            }
            if not disable_interval and interval:
                params["customIntervalInSec"] = interval

            body = await self._request_with_retry("GET", url, self.settings.retry.consumption, params=params)

            result = []
            for entry in body.values():
                if not isinstance(entry, dict):
                    continue
                ms = timestamp_to_ms(entry.get("time") or time_range.start_ms)
                result.append({
                    "time": ms if unix else ms_to_iso(ms, self.settings.tz),
                    "value": entry.get("value"),
                })
            return result
        except Exception as e:
            self._log_failure(e, f"fetch_consumption {device_id}/{sensor}")
            return []

    # ---------------------------
    # Clusters and triggers
    # ---------------------------

    async def get_load_entities(
        self,
        on_prem: Optional[bool] = None,
        clusters: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch every load entity (cluster) of the account, page by page.

        Args:
            clusters: Optional names or ids to keep; an empty list is rejected

        Returns:
            List of load entities, or [] on error
        """
        try:
            if clusters is not None and len(clusters) == 0:
                raise InvalidRequestError("No clusters provided.")

            base_url = self._url(GET_LOAD_ENTITIES, on_prem)
            result: List[Dict[str, Any]] = []
            page = 1
            while True:
                url = f"{base_url}/{self.settings.user_id}/{page}/{LOAD_ENTITIES_PAGE_SIZE}"
                body = await self._request_with_retry("GET", url, self.settings.retry.default)
                if body.get("error"):
                    raise ApplicationError(f"Error in response from {base_url}", body=body, url=url)

                entities = body.get("data") or []
                result.extend(entities)
                total_count = body.get("totalCount") or 0
                if not entities or len(result) >= total_count:
                    break
                page += 1

            if clusters is not None:
                wanted = set(clusters)
                return [item for item in result if item.get("name") in wanted or item.get("id") in wanted]
            return result
        except Exception as e:
            self._log_failure(e, "get_load_entities")
            return []

    async def trigger_parameter(self, title_list: List[str], on_prem: Optional[bool] = None) -> List[Any]:
        """
        Trigger user expressions by title.

        Returns:
            Server response data, or [] on error
        """
        try:
            url = self._url(TRIGGER_URL, on_prem)
            payload = {"userID": self.settings.user_id, "title": title_list}
            body = await self._request_with_retry(
                "PUT", url, self.settings.retry.default, json=payload, headers={"Content-Type": "application/json"}
            )
            if body.get("error"):
                raise ApplicationError("Error in response data", body=body, url=url)
            return body.get("data") or []
        except Exception as e:
            self._log_failure(e, "trigger_parameter")
            return []

    async def cluster_aggregation(
        self,
        cluster_id: str,
        cluster_type: str,
        operator1: str,
        operator2: str,
        start_time: TimeInput,
        end_time: TimeInput = None,
        unix: bool = False,
        on_prem: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Aggregate a cluster over a time range.

        Args:
            cluster_type: normalCluster, fixedValue, productionEntity or demandCluster
            operator1: Per-member aggregation operator
            operator2: Cross-member aggregation operator

        Returns:
            ``{"time", "value"}``, or {} on error
        """
        try:
            if cluster_type not in CLUSTER_TYPES:
                raise InvalidRequestError(f"Unknown cluster type: {cluster_type}")
            time_range = self._time_range(start_time, end_time)
            url = self._url(CLUSTER_AGGREGATION, on_prem)
            payload = {
                "clusterType": cluster_type,
                "operator1": operator1,
                "operator2": operator2,
                "startTime": time_range.start_ms,
                "endTime": time_range.end_ms,
                "userID": self.settings.user_id,
                "clusterID": cluster_id,
            }
            body = await self._request_with_retry("PUT", url, self.settings.retry.default, json=payload)
            data = body.get("data")
            if not isinstance(data, dict):
                raise MalformedResponseError(f"Cluster aggregation response has no data object: {body}")

            ms = timestamp_to_ms(data.get("time") or time_range.start_ms)
            return {
                "time": ms if unix else ms_to_iso(ms, self.settings.tz),
                "value": data.get("value"),
            }
        except Exception as e:
            self._log_failure(e, f"cluster_aggregation {cluster_id}")
            return {}

    async def get_filtered_operation_data(
        self,
        device_id: str,
        sensor_list: Optional[List[str]] = None,
        operation: Optional[str] = None,
        filter_operator: Optional[str] = None,
        threshold: Optional[Any] = None,
        start_time: TimeInput = None,
        end_time: TimeInput = None,
        sensor_operations: Optional[List[Dict[str, Any]]] = None,
        cal: bool = True,
        alias: bool = False,
        unix: bool = False,
        on_prem: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """
        Apply min/max/first/last (optionally filtered) to sensors over a range.

        Either pass ``operation`` (plus optional ``filter_operator`` and
        ``threshold``) for every sensor in ``sensor_list``, or pass
        ``sensor_operations`` rows of ``{"sensor", "operation",
        "filter_operator"?, "threshold"?}``.

        Returns:
            Pivoted rows, or [] on error
        """
        try:
            time_range = self._time_range(start_time, end_time)
            await self._verify_device(device_id, on_prem)

            configs = self._operation_configs(
                device_id, sensor_list, operation, filter_operator, threshold, sensor_operations
            )
            metadata = None
            if not configs:
                metadata = await self.metadata.get_device_metadata(device_id, on_prem)
                configs = self._operation_configs(
                    device_id, sensors_from_metadata(metadata), operation, filter_operator, threshold, None
                )
            if not configs:
                raise NoSensorDataError("No sensor data available.")
            if metadata is None and (cal or alias):
                metadata = await self._optional_metadata(device_id, on_prem)

            request_body = {
                "userID": self.settings.user_id,
                "startTime": time_range.start_ms,
                "endTime": time_range.end_ms,
                "devConfig": configs,
            }
            url = self._url(GET_FILTERED_OPERATION_DATA, on_prem)
            body = await self._request_with_retry("PUT", url, self.settings.retry.default, json=request_body)
            data = body.get("data") or {}

            records = []
            for config in configs:
                info = data.get(f"{device_id}_{config['sensorID']}_{config['operation']}")
                if info:
                    records.append({
                        "sensor": config["sensorID"],
                        "time": info.get("time"),
                        "value": info.get("value"),
                        "deviceId": device_id,
                    })
            if not records:
                return []

            options = self._options_from_metadata(
                metadata, cal=cal, alias=alias, unix=unix, pivot=True, device_filter=device_id
            )
            return clean(records, options)
        except Exception as e:
            self._log_failure(e, f"get_filtered_operation_data {device_id}")
            return []

    @staticmethod
    def _operation_configs(
        device_id: str,
        sensor_list: Optional[List[str]],
        operation: Optional[str],
        filter_operator: Optional[str],
        threshold: Optional[Any],
        sensor_operations: Optional[List[Dict[str, Any]]],
    ) -> List[Dict[str, Any]]:
        """Validate operation inputs and build the ``devConfig`` entries."""

        def _config(sensor: str, op: Optional[str], op_filter: Optional[str], op_threshold: Any) -> Dict[str, Any]:
            if op not in AGGREGATE_OPERATIONS:
                raise InvalidRequestError(f"Unsupported operation: {op}")
            if (op_filter is None) != (op_threshold is None):
                raise InvalidRequestError("Both filter_operator and threshold must be provided together or not at all.")
            entry: Dict[str, Any] = {"devID": device_id, "sensorID": sensor, "operation": op}
            if op_filter is not None:
                if op_filter not in FILTER_OPERATORS:
                    raise InvalidRequestError(f"Unsupported filter operator: {op_filter}")
                entry["operator"] = op_filter
                entry["operatorValue"] = op_threshold
            return entry

        if sensor_operations is not None:
            sensors = [row.get("sensor") for row in sensor_operations]
            if any(not sensor for sensor in sensors):
                raise InvalidRequestError("Every sensor_operations row needs a 'sensor'.")
            if len(set(sensors)) != len(sensors):
                raise InvalidRequestError("Duplicate values detected in the 'sensor' column.")
            return [
                _config(row["sensor"], row.get("operation"), row.get("filter_operator"), row.get("threshold"))
                for row in sensor_operations
            ]

        if operation is None:
            raise InvalidRequestError("The 'operation' variable must be set.")
        return [_config(sensor, operation, filter_operator, threshold) for sensor in sensor_list or []]
