"""Cursor-driven pagination against the data API."""

import asyncio
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from io_connect.config.loader import RetryPolicy
from io_connect.errors import ApplicationError, MalformedResponseError
from io_connect.retrieval.retry import Sleep, with_retry
from io_connect.retrieval.transport import Transport
from io_connect.utils.logging import get_logger

logger = get_logger(__name__)


class CursorForm(str, Enum):
    """Which cursor fields drive a walk."""

    TIME_RANGE = "time_range"  # start + end, both required
    END_LIMIT = "end_limit"  # end + limit, walking back from end


class Cursor(BaseModel):
    """Continuation state issued by the server. Unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    start: Optional[int] = None
    end: Optional[int] = None
    limit: Optional[int] = None

    def has_more(self, form: CursorForm, floor: Optional[int] = None) -> bool:
        if form == CursorForm.TIME_RANGE:
            return bool(self.start) and bool(self.end)
        # Walking backwards: nothing left once the next page ends before the floor
        return bool(self.end) and (floor is None or self.end >= floor)


class PageRequest(BaseModel):
    """Everything about a page request except the cursor fields."""

    url: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    params: Dict[str, Any] = Field(default_factory=dict)
    form: CursorForm = CursorForm.TIME_RANGE
    limit: Optional[int] = None
    floor: Optional[int] = None  # END_LIMIT only, same unit as cursor.end

    def params_for(self, cursor: Cursor) -> Dict[str, Any]:
        params = dict(self.params)
        limit = self.limit or cursor.limit
        if self.form == CursorForm.TIME_RANGE:
            params.update({"sTime": cursor.start, "eTime": cursor.end, "cursor": "true"})
            if limit:
                params["limit"] = limit
        else:
            params.update({"eTime": cursor.end, "cursor": "true"})
            if limit:
                params["lim"] = limit
        return params


def check_application_status(body: Any, url: str) -> Dict[str, Any]:
    """
    Reject bodies that are not objects or that report failure.

    A ``success: false`` flag or a non-empty ``errors`` field counts as
    failure even on a 2xx response.
    """
    if not isinstance(body, dict):
        raise MalformedResponseError(f"Expected a JSON object from {url}, got {type(body).__name__}")
    if body.get("success") is False or body.get("errors"):
        raise ApplicationError(f"API reported unsuccessful operation at {url}", body=body, url=url)
    return body


def parse_cursor(raw: Any) -> Optional[Cursor]:
    if not raw or not isinstance(raw, dict):
        return None
    try:
        return Cursor.model_validate(raw)
    except ValidationError as e:
        raise MalformedResponseError(f"Unusable cursor in response: {raw}") from e


class CursorWalker:
    """Follows server cursors page by page until the server signals exhaustion."""

    def __init__(
        self,
        transport: Transport,
        policy: RetryPolicy,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        self.transport = transport
        self.policy = policy
        self.sleep = sleep

    async def _fetch_page(self, template: PageRequest, cursor: Cursor) -> Tuple[Any, Optional[Cursor]]:
        response = await self.transport.request(
            template.method,
            template.url,
            headers=template.headers or None,
            params=template.params_for(cursor),
        )
        body = check_application_status(response.data, template.url)
        return body.get("data"), parse_cursor(body.get("cursor"))

    async def walk(self, template: PageRequest, initial_cursor: Cursor) -> AsyncIterator[Any]:
        """
        Yield the ``data`` payload of every page, in cursor order.

        Raises:
            RetryExhaustedError: If a page keeps failing past the retry budget
        """
        cursor: Optional[Cursor] = initial_cursor
        page_number = 0
        while cursor is not None and cursor.has_more(template.form, template.floor):
            page_number += 1
            current = cursor

            async def _operation() -> Tuple[Any, Optional[Cursor]]:
                return await self._fetch_page(template, current)

            data, cursor = await with_retry(
                _operation,
                self.policy,
                sleep=self.sleep,
                description=f"{template.url} (page {page_number})",
            )
            logger.debug(f"Page {page_number} from {template.url}: next cursor {cursor}")
            if data is not None:
                yield data

    async def collect(self, template: PageRequest, initial_cursor: Cursor) -> List[Any]:
        """Concatenate every page; list pages are flattened, other payloads kept whole."""
        items: List[Any] = []
        async for page in self.walk(template, initial_cursor):
            if isinstance(page, list):
                items.extend(page)
            else:
                items.append(page)
        logger.info(f"Fetched {len(items)} data points from {template.url}")
        return items
