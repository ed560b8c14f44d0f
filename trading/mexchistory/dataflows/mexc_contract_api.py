"""
MEXC Contract API Client
Wrapper for the private history endpoints of the MEXC futures (contract) REST API

Reference: https://mexcdevelop.github.io/apidocs/contract_v1_en/
"""

import hmac
import hashlib
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

import requests
from loguru import logger
from pydantic import ValidationError

from mexchistory.models.history_models import ApiResponse, HistoryFilters


POSITION_HISTORY_ENDPOINT = "/api/v1/private/position/list/history_positions"
ORDER_HISTORY_ENDPOINT = "/api/v1/private/order/list/history_orders"

DEFAULT_PAGE_SIZE = 100
DEFAULT_LOOKBACK_DAYS = 90  # Maximum lookback supported by the exchange
DAY_MS = 24 * 60 * 60 * 1000


class MexcApiException(Exception):
    """Base class for MEXC client errors."""


class SignatureInputError(MexcApiException):
    """Raised when the signer receives parameters it cannot encode."""


class ApiError(MexcApiException):
    """
    Raised when a request fails at the transport level, returns a non-2xx status,
    or reports ``success: false`` in its body.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.headers = dict(headers) if headers else {}
        self.code = code

    def details(self) -> Dict[str, Any]:
        """Diagnostic view of the failure (message, body, status, headers)."""
        return {
            "message": self.message,
            "response": self.response_body,
            "status": self.status_code,
            "headers": self.headers,
        }


def default_time_window(now_ms: Optional[int] = None, days: int = DEFAULT_LOOKBACK_DAYS) -> Tuple[int, int]:
    """
    Trailing time window ending now.

    Args:
        now_ms: Window end in epoch milliseconds (default: current time)
        days: Window length in days

    Returns:
        (start_time, end_time) in epoch milliseconds
    """
    end_time = int(time.time() * 1000) if now_ms is None else int(now_ms)
    return end_time - days * DAY_MS, end_time


class MexcContractClient:
    """MEXC Contract private REST API client (read-only history queries)"""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = "https://contract.mexc.com",
        recv_window: int = 60000,
        page_delay: float = 0.3,
        timeout: float = 10.0,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize MEXC contract client

        Credentials are not validated here; a missing key surfaces as an
        ApiError on the first authenticated request.

        Args:
            api_key: API key, sent in the ApiKey header
            api_secret: API secret, used only as the HMAC key
            base_url: API base URL (default: https://contract.mexc.com)
            recv_window: Recv-Window header value in milliseconds (default: 60000)
            page_delay: Fixed pause in seconds between two page requests (default: 0.3)
            timeout: Request timeout in seconds (default: 10.0)
            clock: Optional millisecond clock, used for Request-Time
        """
        self.api_key = api_key or ""
        self.api_secret = api_secret or ""
        self.base_url = base_url.rstrip("/")
        self.recv_window = recv_window
        self.page_delay = page_delay
        self.timeout = timeout
        self._clock = clock or (lambda: int(time.time() * 1000))

        self.session = requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
        })

    # ==================== Signing ====================

    @staticmethod
    def url_encode(value: str) -> str:
        """
        Percent-encode a parameter value the way the exchange expects.

        Matches URI component encoding (so ! ' ( ) * are escaped too), except that
        a plus sign becomes %20 rather than %2B.
        """
        return quote(value, safe="-_.~").replace("%2B", "%20")

    @staticmethod
    def _stringify(key: str, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, (str, int, float)):
            return str(value)
        raise SignatureInputError(
            f"Parameter '{key}' has unsupported type {type(value).__name__}"
        )

    def get_request_param_string(self, params: Optional[Mapping[str, Any]]) -> str:
        """
        Build the canonical parameter string used both as signature input and as
        the query string sent on the wire.

        Args:
            params: Request parameters (None values are skipped)

        Returns:
            Sorted, encoded "key=value" pairs joined by "&" (empty for no params)

        Raises:
            SignatureInputError: If params is not a mapping or holds a non-scalar value
        """
        if params is None:
            return ""
        if not isinstance(params, Mapping):
            raise SignatureInputError(
                f"Request parameters must be a mapping, got {type(params).__name__}"
            )

        pairs = []
        for key in sorted(params):
            value = params[key]
            if value is None:
                continue
            pairs.append(f"{key}={self.url_encode(self._stringify(key, value))}")
        return "&".join(pairs)

    def generate_signature(self, timestamp: Any, params: Optional[Mapping[str, Any]] = None) -> str:
        """
        Generate request signature

        Args:
            timestamp: Request-Time value in milliseconds
            params: Request parameters

        Returns:
            Lowercase hex HMAC-SHA256 of apiKey + timestamp + parameter string
        """
        param_string = self.get_request_param_string(params)
        sign_string = f"{self.api_key}{timestamp}{param_string}"
        return hmac.new(
            self.api_secret.encode("utf-8"),
            sign_string.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    # ==================== Transport ====================

    def _signed_get(self, endpoint: str, params: Mapping[str, Any]) -> Any:
        """
        Issue one authenticated GET request and return the envelope's data.

        No retry: any failure raises ApiError immediately.
        """
        url = f"{self.base_url}{endpoint}"
        query_string = self.get_request_param_string(params)
        timestamp = str(self._clock())
        headers = {
            "ApiKey": self.api_key,
            "Request-Time": timestamp,
            "Signature": self.generate_signature(timestamp, params),
            "Recv-Window": str(self.recv_window),
        }

        try:
            # Pass the pre-encoded string so the server sees exactly what was signed
            response = self.session.get(
                url, params=query_string, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            response = e.response
            logger.error(f"API request failed: GET {endpoint} - {e}")
            raise ApiError(
                f"HTTP {response.status_code} on GET {endpoint}",
                status_code=response.status_code,
                response_body=response.text,
                headers=response.headers,
            ) from e
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout after {self.timeout}s: GET {endpoint}")
            raise ApiError(f"API request timeout after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Connection error: GET {endpoint} - {e}")
            raise ApiError(f"API connection failed: {e}") from e

        try:
            envelope = ApiResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ApiError(
                f"Malformed response from GET {endpoint}",
                status_code=response.status_code,
                response_body=response.text,
                headers=response.headers,
            ) from e

        if not envelope.success:
            message = envelope.message or "Unknown error"
            raise ApiError(
                f"API Error: {message}",
                status_code=response.status_code,
                response_body=response.text,
                headers=response.headers,
                code=envelope.code,
            )

        return envelope.data

    # ==================== Pagination ====================

    def fetch_history(
        self,
        endpoint: str,
        base_filters: Optional[Mapping[str, Any]] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[Dict]:
        """
        Page through a history endpoint until it returns an empty page.

        Args:
            endpoint: Private endpoint path
            base_filters: Filters sent with every page (None values are dropped)
            page_size: Records per page

        Returns:
            All records, in request order

        Raises:
            ApiError: On any failed page; records fetched so far are discarded
        """
        filters = {k: v for k, v in (base_filters or {}).items() if v is not None}
        records: List[Dict] = []
        page_num = 1

        while True:
            if page_num > 1:
                time.sleep(self.page_delay)

            params = {**filters, "page_num": page_num, "page_size": page_size}
            page = self._signed_get(endpoint, params) or []
            if not isinstance(page, list):
                raise ApiError(
                    f"Expected a list of records from {endpoint}, got {type(page).__name__}"
                )

            if not page:
                break

            records.extend(page)
            logger.debug(f"Fetched page {page_num}, got {len(page)} records")
            page_num += 1

        logger.info(f"Fetched {len(records)} records from {endpoint} in {page_num} requests")
        return records

    # ==================== History endpoints ====================

    def _with_window(self, filters: Optional[HistoryFilters]) -> Dict[str, Any]:
        filters = filters or HistoryFilters()
        params = filters.to_params()
        if filters.start_time is None or filters.end_time is None:
            start_time, end_time = default_time_window(now_ms=filters.end_time)
            params.setdefault("start_time", start_time)
            params["end_time"] = end_time
        return params

    def get_position_history(
        self,
        filters: Optional[HistoryFilters] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[Dict]:
        """
        Fetch historical positions.

        Args:
            filters: Optional symbol / time window (default: trailing 90 days)
            page_size: Records per page

        Returns:
            Position records sorted by createTime, newest first
        """
        params = self._with_window(filters)
        params.pop("states", None)
        params.pop("category", None)
        params.pop("side", None)
        params.pop("type", None)
        positions = self.fetch_history(POSITION_HISTORY_ENDPOINT, params, page_size)
        positions.sort(key=lambda p: p.get("createTime") or 0, reverse=True)
        return positions

    def get_order_history(
        self,
        filters: Optional[HistoryFilters] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[Dict]:
        """
        Fetch historical orders.

        Args:
            filters: Optional symbol, states, category, side, type and time window
            page_size: Records per page

        Returns:
            Order records in request order
        """
        params = self._with_window(filters)
        return self.fetch_history(ORDER_HISTORY_ENDPOINT, params, page_size)
