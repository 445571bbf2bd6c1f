"""One-shot metadata lookups: user, device list, device metadata."""

import asyncio
from typing import Any, Dict, List, Optional

from io_connect.config.loader import ConnectSettings, RetryPolicy
from io_connect.constants import (
    GET_DEVICE_DETAILS_URL,
    GET_DEVICE_METADATA_URL,
    GET_USER_INFO_URL,
    build_url,
)
from io_connect.errors import MalformedResponseError
from io_connect.retrieval.retry import Sleep, with_retry
from io_connect.retrieval.transport import Transport
from io_connect.utils.logging import get_logger, log_timing

logger = get_logger(__name__)


class MetadataProvider:
    """Reads account and device metadata from the data service."""

    def __init__(
        self,
        transport: Transport,
        settings: ConnectSettings,
        *,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.transport = transport
        self.settings = settings
        # Metadata calls are single-shot unless a policy is given
        self.policy = policy or RetryPolicy(max_attempts=1)
        self.sleep = sleep

    def _on_prem(self, on_prem: Optional[bool]) -> bool:
        return self.settings.on_prem if on_prem is None else on_prem

    async def _get_data(self, url: str) -> Any:
        async def _operation() -> Any:
            with log_timing(logger, f"API {url} response time:", self.settings.log_time):
                response = await self.transport.request(
                    "GET", url, headers={"userID": self.settings.user_id}
                )
            body = response.data
            if not isinstance(body, dict) or not body.get("data"):
                raise MalformedResponseError('Missing "data" in response')
            return body["data"]

        if self.policy.max_attempts == 1:
            return await _operation()
        return await with_retry(_operation, self.policy, sleep=self.sleep, description=url)

    async def get_user_info(self, on_prem: Optional[bool] = None) -> Dict[str, Any]:
        url = build_url(GET_USER_INFO_URL, on_prem=self._on_prem(on_prem), data_url=self.settings.data_url)
        return await self._get_data(url)

    async def get_device_details(self, on_prem: Optional[bool] = None) -> List[Dict[str, Any]]:
        url = build_url(
            GET_DEVICE_DETAILS_URL, on_prem=self._on_prem(on_prem), data_url=self.settings.data_url
        )
        devices = await self._get_data(url)
        if not isinstance(devices, list):
            raise MalformedResponseError("Device list is not an array")
        return devices

    async def get_device_metadata(self, device_id: str, on_prem: Optional[bool] = None) -> Dict[str, Any]:
        url = build_url(
            GET_DEVICE_METADATA_URL,
            on_prem=self._on_prem(on_prem),
            data_url=self.settings.data_url,
            device_id=device_id,
        )
        metadata = await self._get_data(url)
        if not isinstance(metadata, dict):
            raise MalformedResponseError("Device metadata is not an object")
        return metadata

    async def device_exists(self, device_id: str, on_prem: Optional[bool] = None) -> bool:
        devices = await self.get_device_details(on_prem)
        return any(device.get("devID") == device_id for device in devices)

    async def get_sensors(self, device_id: str, on_prem: Optional[bool] = None) -> List[str]:
        """Sensor ids configured on a device, in metadata order."""
        metadata = await self.get_device_metadata(device_id, on_prem)
        return sensors_from_metadata(metadata)


def sensors_from_metadata(metadata: Optional[Dict[str, Any]]) -> List[str]:
    if not metadata:
        return []
    return [s["sensorId"] for s in metadata.get("sensors") or [] if s.get("sensorId")]
