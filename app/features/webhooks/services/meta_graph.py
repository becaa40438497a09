import asyncio
from typing import Any, Optional

import httpx

from app.platform.config import Settings
from app.platform.exceptions import UpstreamError
from app.platform.logger import get_logger

logger = get_logger(__name__)

LEAD_FIELDS = (
    "id,created_time,field_data,form_id,ad_id,ad_name,adset_id,adset_name,campaign_id,campaign_name"
)
FORM_FIELDS = "id,name"

# Connection resets, refused connections and timeouts are worth another try
RETRYABLE_ERRORS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
)


def _graph_error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error", {})
        return error.get("message") or response.text
    except (ValueError, AttributeError):
        return response.text


class MetaGraphClient:
    """
    Reads lead and form details from the Meta Graph API.

    The leadgen webhook only carries ids; the answers themselves have to be
    fetched. Each request gets `timeout` seconds; 5xx responses and network
    errors are retried with exponential backoff (1s, 2s, ...) up to
    `max_attempts`, anything else fails straight away.
    """

    def __init__(
        self,
        access_token: Optional[str],
        base_url: str = "https://graph.facebook.com",
        api_version: str = "v18.0",
        timeout: float = 10.0,
        max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self.transport = transport

    @classmethod
    def from_settings(cls, config: Settings) -> "MetaGraphClient":
        return cls(
            access_token=config.META_ACCESS_TOKEN,
            base_url=config.META_GRAPH_BASE_URL,
            api_version=config.META_GRAPH_API_VERSION,
            timeout=config.META_API_TIMEOUT_SECONDS,
            max_attempts=config.META_API_MAX_ATTEMPTS,
            retry_base_delay=config.META_API_RETRY_BASE_DELAY_MS / 1000,
        )

    async def fetch_lead_details(self, leadgen_id: str) -> dict[str, Any]:
        """Raises UpstreamError when the lead can't be read."""
        return await self._get(leadgen_id, LEAD_FIELDS)

    async def fetch_form_details(self, form_id: Optional[str]) -> Optional[dict[str, Any]]:
        """Form name is nice to have: any failure degrades to None."""
        if not form_id:
            return None
        try:
            return await self._get(form_id, FORM_FIELDS)
        except (UpstreamError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not fetch Meta form {form_id}, continuing without a form name: {e}")
            return None

    async def _get(self, object_id: str, fields: str) -> dict[str, Any]:
        if not self.access_token:
            raise UpstreamError("META_ACCESS_TOKEN is not configured")

        url = f"{self.base_url}/{self.api_version}/{object_id}"
        params = {"access_token": self.access_token, "fields": fields}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    if not isinstance(data, dict):
                        raise UpstreamError(f"Unexpected Meta Graph API response for {object_id}")
                    return data

                except httpx.HTTPStatusError as e:
                    status_code = e.response.status_code
                    message = (
                        f"Meta Graph API returned {status_code} for {object_id}: "
                        f"{_graph_error_message(e.response)}"
                    )
                    if status_code < 500 or attempt == self.max_attempts:
                        raise UpstreamError(message, status_code=status_code) from e
                    logger.warning(f"{message} (attempt {attempt}/{self.max_attempts})")

                except RETRYABLE_ERRORS as e:
                    message = f"Meta Graph API request for {object_id} failed: {e.__class__.__name__}: {e}"
                    if attempt == self.max_attempts:
                        raise UpstreamError(message) from e
                    logger.warning(f"{message} (attempt {attempt}/{self.max_attempts})")

                wait_time = self.retry_base_delay * (2 ** (attempt - 1))  # Exponential backoff: 1s, 2s, 4s
                await asyncio.sleep(wait_time)

        raise UpstreamError(f"Meta Graph API request for {object_id} failed")
