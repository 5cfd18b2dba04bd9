from typing import Dict, Any, Optional

import httpx
from httpx import TimeoutException, HTTPStatusError

from casework.core.exceptions import APIClientError, APITimeoutError
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseAPIClient:
    """Base client for JSON-over-HTTP service calls.

    Handles authentication headers, timeouts and translation of transport
    failures into APIClientError / APITimeoutError. A single call is made per
    request; retry policy belongs to the caller.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the API client.

        Args:
            api_key: API key for authentication
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the network in tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.logger = LOGGER

    async def call_api(
        self,
        endpoint: str = "",
        method: str = "POST",
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """Call the API once.

        Args:
            endpoint: API endpoint (appended to base_url)
            method: HTTP method (POST, GET, etc.)
            payload: JSON payload
            headers: Additional headers

        Returns:
            Parsed JSON response

        Raises:
            APIClientError: If the API responds with an error status or the call fails
            APITimeoutError: If the API call times out
        """
        url = f"{self.base_url}{endpoint}" if endpoint else self.base_url

        default_headers = {"Content-Type": "application/json"}
        if self.api_key:
            default_headers["Authorization"] = f"Bearer {self.api_key}"
        if headers:
            default_headers.update(headers)

        self.logger.debug(
            f"Calling API: {url}",
            extra={"method": method, "timeout": self.timeout}
        )

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                if method.upper() == "GET":
                    response = await client.get(url, headers=default_headers, params=payload)
                else:
                    response = await client.post(url, headers=default_headers, json=payload)

                response.raise_for_status()
                return response.json()

            except HTTPStatusError as e:
                status_code = e.response.status_code
                error_body = e.response.text

                self.logger.warning(
                    "API HTTP error",
                    extra={
                        "url": url,
                        "status_code": status_code,
                        "error_body": error_body[:500]  # Truncate for logs
                    }
                )
                raise APIClientError(
                    f"API error {status_code}: {error_body[:200]}",
                    status_code=status_code,
                    original_error=e,
                ) from e

            except TimeoutException as e:
                self.logger.warning("API timeout", extra={"url": url})
                raise APITimeoutError(f"API timeout calling {url}", original_error=e) from e

            except httpx.HTTPError as e:
                self.logger.warning("API transport error", extra={"url": url, "error": str(e)})
                raise APIClientError(f"API error: {str(e)}", original_error=e) from e

            except ValueError as e:
                # Response body was not JSON
                raise APIClientError(
                    f"Invalid JSON response from {url}",
                    status_code=response.status_code,
                    original_error=e,
                ) from e
