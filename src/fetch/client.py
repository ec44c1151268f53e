"""HTTP client for supplier endpoints with retries and error classification."""
import logging
from typing import Any, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import config
from src.errors import (
    SupplierConnectionError,
    SupplierTimeoutError,
    classify_error_response,
)
from src.fetch.endpoints import subscription_quantity_url
from src.parse.xml_records import decode_document

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def is_retryable_status(response: httpx.Response) -> bool:
    """Check if status code is retryable."""
    return response.status_code in RETRYABLE_STATUS


def response_text(response: httpx.Response) -> str:
    """Body text. Without a charset header, XML is decoded per its own declaration."""
    if response.charset_encoding is None:
        return decode_document(response.content)
    return response.text


def response_body(response: httpx.Response) -> Any:
    """Parsed JSON body when there is one, raw text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text


class SupplierClient:
    """
    Async HTTP client used for every supplier and dashboard call.

    Timeouts and network failures are retried with exponential backoff, as
    are 429/5xx responses. Once retries are exhausted, transport failures
    become ``SupplierConnectionError`` / ``SupplierTimeoutError`` and error
    responses go through ``classify_error_response``.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff: float = 1.0,
    ):
        limits = httpx.Limits(
            max_connections=20,
            max_keepalive_connections=5,
        )
        self.client = httpx.AsyncClient(
            http2=True,
            timeout=timeout or config.TIMEOUT,
            follow_redirects=True,
            limits=limits,
            transport=transport,
        )
        self.max_retries = max_retries or config.MAX_RETRIES
        self.backoff = backoff

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request; returns only successful responses."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=self.backoff, min=0, max=30),
                retry=retry_if_exception_type(
                    (httpx.TimeoutException, httpx.NetworkError, _RetryableStatus)
                ),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(f"Retrying {method} {url} (attempt {attempt.retry_state.attempt_number})")
                    response = await self.client.request(method, url, **kwargs)
                    if is_retryable_status(response):
                        raise _RetryableStatus(response)
        except _RetryableStatus as e:
            response = e.response
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout for {method} {url}: {e}")
            raise SupplierTimeoutError(f"Request to {url} timed out", {"url": url}) from e
        except httpx.TransportError as e:
            logger.warning(f"Network error for {method} {url}: {e}")
            raise SupplierConnectionError(f"Could not reach {url}: {e}", {"url": url}) from e

        if response.is_error:
            error = classify_error_response(response.status_code, response_body(response))
            logger.warning(f"{method} {url} failed with {response.status_code}: {error.kind.value}")
            raise error
        return response

    async def get_text(self, url: str, params: Optional[dict] = None) -> str:
        response = await self.request("GET", url, params=params)
        return response_text(response)

    async def post_text(self, url: str, body: bytes | str, content_type: str = "application/xml") -> str:
        """POST a text body (XML by default) and return the raw response text."""
        response = await self.request(
            "POST",
            url,
            content=body,
            headers={"Content-Type": f"{content_type}; charset=utf-8"},
        )
        return response_text(response)

    async def post_json(self, url: str, payload: Any) -> str:
        """POST a JSON body and return the raw response text."""
        response = await self.request("POST", url, json=payload)
        return response_text(response)

    async def update_subscription_quantity(self, quantity: int) -> dict:
        """Set the subscribed branch capacity on the dashboard API."""
        headers = {}
        if config.API_TOKEN:
            headers["Authorization"] = f"Bearer {config.API_TOKEN}"
        response = await self.request(
            "PATCH",
            subscription_quantity_url(),
            json={"quantity": quantity},
            headers=headers,
        )
        body = response_body(response)
        logger.info(f"Subscription quantity updated to {quantity}")
        return body if isinstance(body, dict) else {}
