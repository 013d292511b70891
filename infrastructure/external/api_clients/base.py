"""
REST API客户端基类

Async JSON-over-HTTP client used for upstream data sources:
- 超时控制 (one httpx timeout per request)
- optional retries on transient failures (tenacity)
- typed error classes
- request/response debug logging (query secrets redacted)
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

# Query parameters never written to logs
_REDACTED_PARAMS = {"key", "api_key", "apikey", "token"}

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass
class APIResponse:
    """API响应封装"""
    status_code: int
    headers: Dict[str, str]
    data: Any
    raw_content: bytes
    elapsed_ms: float

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def json(self) -> Any:
        """获取JSON响应"""
        if self.data is not None:
            return self.data
        return json.loads(self.raw_content)


class APIError(Exception):
    """API错误基类"""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[APIResponse] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)

    def __str__(self):
        if self.status_code:
            return f"{self.message} | Status: {self.status_code}"
        return self.message


class AuthenticationError(APIError):
    """认证错误"""


class NotFoundError(APIError):
    """资源未找到错误"""


class ServerError(APIError):
    """服务器错误"""


class RetryableAPIError(APIError):
    """可重试的API错误"""


def extract_error_message(data: Any) -> Optional[str]:
    """Pull a human readable message out of an error body.

    Handles flat (`{"message": ...}`) and nested
    (`{"error": {"code": 1006, "message": ...}}`) shapes.
    """
    if not isinstance(data, dict):
        return None
    for key in ("message", "error", "detail"):
        value = data.get(key)
        if isinstance(value, dict):
            nested = value.get("message")
            if nested:
                return str(nested)
        elif value:
            return str(value)
    return None


class BaseAPIClient:
    """
    REST API客户端基类

    Subclasses add the concrete endpoint calls on top of ``get``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 0,
        retry_delay: float = 1.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        debug: bool = False,
    ):
        """
        Args:
            base_url: API基础URL
            timeout: 请求超时时间（秒）
            max_retries: 最大重试次数 (0 disables retrying)
            retry_delay: 重试延迟（秒）
            headers: 默认请求头
            transport: custom httpx transport (tests pass httpx.MockTransport)
            debug: 是否开启调试模式
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay
        self.debug = debug
        self._transport = transport

        self.default_headers = {
            "Accept": "application/json",
            "User-Agent": "WeatherRelay/1.0",
        }
        if headers:
            self.default_headers.update(headers)

        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self.default_headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """关闭HTTP客户端"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _build_url(self, endpoint: str) -> str:
        endpoint = endpoint.lstrip('/')
        return f"{self.base_url}/{endpoint}"

    def _log_request(self, method: str, url: str, params: Optional[Dict[str, Any]]):
        if self.debug:
            safe = {k: ("***" if k.lower() in _REDACTED_PARAMS else v) for k, v in (params or {}).items()}
            logger.debug(f"API Request: {method} {url}", extra={"params": safe})

    def _log_response(self, response: APIResponse):
        if self.debug:
            logger.debug(
                f"API Response: {response.status_code}",
                extra={"status_code": response.status_code, "elapsed_ms": response.elapsed_ms},
            )

    def _handle_error_response(self, response: APIResponse):
        """处理错误响应"""
        error_map = {
            401: AuthenticationError,
            403: AuthenticationError,
            404: NotFoundError,
            500: ServerError,
            502: ServerError,
            503: ServerError,
            504: ServerError,
        }
        error_class = error_map.get(response.status_code, APIError)
        message = extract_error_message(response.data) or f"HTTP error: {response.status_code}"
        raise error_class(message=message, status_code=response.status_code, response=response)

    async def _send_once(self, method: str, url: str, params: Optional[Dict[str, Any]]) -> APIResponse:
        start_time = datetime.now()
        response = await self.client.request(method=method, url=url, params=params)
        elapsed = (datetime.now() - start_time).total_seconds() * 1000

        response_data = None
        if "application/json" in response.headers.get("content-type", ""):
            try:
                response_data = response.json()
            except ValueError:
                response_data = None

        api_response = APIResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            data=response_data,
            raw_content=response.content,
            elapsed_ms=elapsed,
        )
        self._log_response(api_response)

        if api_response.is_error and api_response.status_code in RETRY_STATUS_CODES:
            raise RetryableAPIError(
                message=f"Transient API error with status {api_response.status_code}",
                status_code=api_response.status_code,
                response=api_response,
            )
        if api_response.is_error:
            self._handle_error_response(api_response)
        return api_response

    async def _request(self, method: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> APIResponse:
        """
        发送HTTP请求

        Raises:
            APIError: timeout, network failure, or a non-2xx response
        """
        url = self._build_url(endpoint)
        self._log_request(method, url, params)

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.retry_delay,
                min=self.retry_delay,
                max=self.retry_delay * 8,
            ),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, RetryableAPIError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(method, url, params)
        except httpx.TimeoutException as exc:
            raise APIError(f"Request timeout after {self.timeout}s") from exc
        except httpx.NetworkError as exc:
            raise APIError(f"Network error: {exc}") from exc
        except RetryableAPIError as exc:
            self._handle_error_response(exc.response)
        except APIError:
            raise
        except httpx.HTTPError as exc:
            raise APIError(f"HTTP error: {exc}") from exc
        raise APIError("Request failed without a response")

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> APIResponse:
        """GET请求"""
        return await self._request("GET", endpoint, params=params)
