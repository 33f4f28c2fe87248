"""
UpCloud API Client
==================

UpCloud integration using direct REST API calls via httpx.

Every call carries HTTP basic auth and a bounded transport timeout, so a
hung connection fails instead of blocking the driver forever.

API Docs: https://developers.upcloud.com/
"""

import logging
from typing import List, Optional, Dict, Any

import httpx

from .base import (
    ProviderClient,
    Zone,
    ServerDetails,
    CreateServerRequest,
    STOP_TYPE_SOFT,
    ProviderError,
    ProviderAuthError,
    ProviderResourceError,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)


DEFAULT_API_URL = "https://api.upcloud.com/1.3"
DEFAULT_TIMEOUT = 30.0

# Seconds the provider waits for a soft stop before giving up on it
PROVIDER_STOP_TIMEOUT = 60


class UpCloudClient(ProviderClient):
    """
    UpCloud API client.

    Usage:
        with UpCloudClient("user", "password") as client:
            zones = client.list_zones()
    """

    PROVIDER_ID = "upcloud"

    def __init__(
        self,
        username: str,
        password: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the UpCloud client.

        Args:
            username: API user
            password: API user's password
            base_url: API root, including the version
            timeout: Per-call transport timeout in seconds
            transport: Optional httpx transport override
        """
        self.username = username
        self.client = httpx.Client(
            base_url=base_url,
            auth=(username, password),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
    ) -> Dict[str, Any]:
        """Make an authenticated API request."""
        logger.debug(f"{method} {endpoint}")
        try:
            response = self.client.request(method=method, url=endpoint, json=data)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError("upcloud", f"Request timed out: {method} {endpoint}: {e}")
        except httpx.HTTPError as e:
            raise ProviderError("upcloud", f"Request failed: {method} {endpoint}: {e}")

        if response.is_success:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError:
                raise ProviderError(
                    "upcloud",
                    f"Invalid JSON response: {method} {endpoint}",
                    {"status_code": response.status_code},
                )

        error_code, error_msg = self._parse_error(response)
        details = {"status_code": response.status_code, "error_code": error_code}

        if response.status_code in (401, 403):
            raise ProviderAuthError("upcloud", f"Authentication failed: {error_msg}", details)
        if response.status_code == 404:
            raise ProviderResourceError("upcloud", f"Resource not found: {endpoint}: {error_msg}", details)
        raise ProviderError("upcloud", f"API error: {error_msg}", details)

    @staticmethod
    def _parse_error(response: httpx.Response) -> tuple:
        """Pull (error_code, error_message) out of an error response."""
        error_msg = f"HTTP {response.status_code}"
        error_code = ""
        try:
            error_data = response.json()
        except ValueError:
            return error_code, error_msg

        error = error_data.get("error") if isinstance(error_data, dict) else None
        if isinstance(error, dict):
            error_code = error.get("error_code", "")
            error_msg = error.get("error_message", error_msg)
        return error_code, error_msg

    # =========================================
    # ZONES
    # =========================================

    def list_zones(self) -> List[Zone]:
        """List UpCloud zones."""
        response = self._make_request("GET", "/zone")
        zones_data = response.get("zones", {}).get("zone", [])
        return [
            Zone(
                id=zone.get("id", ""),
                description=zone.get("description", ""),
                public=zone.get("public", "yes") == "yes",
            )
            for zone in zones_data
        ]

    # =========================================
    # SERVERS
    # =========================================

    def create_server(self, request: CreateServerRequest) -> ServerDetails:
        """Create an UpCloud server."""
        response = self._make_request("POST", "/server", data=request.to_payload())
        return ServerDetails.from_payload(response)

    def get_server_details(self, uuid: str) -> ServerDetails:
        """Get an UpCloud server by UUID."""
        response = self._make_request("GET", f"/server/{uuid}")
        return ServerDetails.from_payload(response)

    def start_server(self, uuid: str) -> None:
        self._make_request("POST", f"/server/{uuid}/start")

    def stop_server(self, uuid: str, stop_type: str = STOP_TYPE_SOFT) -> None:
        data = {
            "stop_server": {
                "stop_type": stop_type,
                "timeout": str(PROVIDER_STOP_TIMEOUT),
            }
        }
        self._make_request("POST", f"/server/{uuid}/stop", data=data)

    def restart_server(self, uuid: str) -> None:
        data = {
            "restart_server": {
                "stop_type": STOP_TYPE_SOFT,
                "timeout": str(PROVIDER_STOP_TIMEOUT),
                "timeout_action": "ignore",
            }
        }
        self._make_request("POST", f"/server/{uuid}/restart", data=data)

    def delete_server(self, uuid: str) -> None:
        self._make_request("DELETE", f"/server/{uuid}")

    # =========================================
    # STORAGE
    # =========================================

    def delete_storage(self, uuid: str) -> None:
        self._make_request("DELETE", f"/storage/{uuid}")

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self.client.close()
