"""
Client for the Atlas clusters API.

All cluster operations in Atlas are asynchronous: create, update and delete
return as soon as Atlas accepted the request and the cluster moves through its
lifecycle states afterwards.
"""
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from atlas_broker.config.logging import get_logger
from atlas_broker.config.settings import Settings, settings
from atlas_broker.exceptions import AtlasError
from atlas_broker.models.cluster import Cluster
from atlas_broker.utils.retry import retry_on_atlas_error

logger = get_logger(__name__)

API_PATH = "api/atlas/v1.0"

# Error code of AtlasError raised for response bodies that cannot be parsed.
INVALID_RESPONSE = "INVALID_RESPONSE"


class AtlasClient:
    """
    Async client for the clusters of one Atlas project (group).

    Authenticates with a programmatic API key pair over HTTP digest auth.
    Idempotent reads are retried on transient failures, mutations are not.
    """

    def __init__(
        self,
        base_url: str,
        group_id: str,
        public_key: str,
        private_key: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        page_size: int = 500,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Atlas client.

        Args:
            base_url: Atlas base URL, e.g. https://cloud.mongodb.com
            group_id: Atlas project ID
            public_key: API public key
            private_key: API private key
            timeout: Request timeout in seconds
            max_retries: Retries for idempotent reads
            page_size: Clusters per list request; only the first page is read
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip('/')
        self.group_id = group_id
        self.max_retries = max_retries
        self.page_size = page_size

        self.client = httpx.AsyncClient(
            base_url=f"{self.base_url}/{API_PATH}/groups/{group_id}/",
            auth=httpx.DigestAuth(public_key, private_key),
            timeout=httpx.Timeout(timeout),
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "AtlasClient":
        return cls(
            base_url=config.atlas_base_url,
            group_id=config.atlas_group_id,
            public_key=config.atlas_public_key,
            private_key=config.atlas_private_key.get_secret_value(),
            timeout=config.atlas_timeout_seconds,
            max_retries=config.atlas_max_retries,
            page_size=config.atlas_page_size,
        )

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self.client.aclose()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> AtlasError:
        """Build an AtlasError from an Atlas error document."""
        error_code = None
        detail = response.text
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            error_code = body.get("errorCode")
            detail = body.get("detail") or body.get("reason") or detail

        retry_after = None
        header = response.headers.get("Retry-After")
        if header and header.isdigit():
            retry_after = float(header)

        return AtlasError(
            status_code=response.status_code,
            error_code=error_code,
            detail=detail,
            retry_after=retry_after,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and decode the JSON response.

        Raises:
            AtlasError: If Atlas answers with an error status or a body that
                is not JSON
            httpx.TransportError: On network failures
        """
        logger.debug("atlas_request", method=method, path=path)

        response = await self.client.request(method, path, json=json, params=params)

        if response.is_error:
            error = self._error_from_response(response)
            logger.error(
                "atlas_request_failed",
                method=method,
                path=path,
                status_code=error.status_code,
                error_code=error.error_code,
                detail=error.detail,
            )
            raise error

        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise self._invalid_response(method, path, "response body is not JSON")

    @staticmethod
    def _invalid_response(method: str, path: str, detail: str) -> AtlasError:
        logger.error("atlas_response_invalid", method=method, path=path, detail=detail)
        return AtlasError(status_code=None, error_code=INVALID_RESPONSE, detail=detail)

    def _parse_cluster(self, data: Any, method: str, path: str) -> Cluster:
        """
        Parse a cluster document returned by Atlas.

        Raises:
            AtlasError: If the document does not describe a cluster
        """
        try:
            return Cluster.model_validate(data or {})
        except ValidationError as e:
            raise self._invalid_response(
                method, path, f"unexpected cluster document: {e.error_count()} invalid field(s)"
            )

    async def create_cluster(self, cluster: Cluster) -> Cluster:
        """
        Create a new cluster asynchronously.

        POST /clusters
        """
        data = await self._request("POST", "clusters", json=cluster.to_payload())
        return self._parse_cluster(data, "POST", "clusters")

    async def update_cluster(self, cluster: Cluster) -> Cluster:
        """
        Update a cluster asynchronously.

        PATCH /clusters/{CLUSTER-NAME}
        """
        path = f"clusters/{cluster.name}"
        data = await self._request("PATCH", path, json=cluster.to_payload())
        return self._parse_cluster(data, "PATCH", path)

    async def delete_cluster(self, name: str) -> None:
        """
        Terminate a cluster asynchronously.

        DELETE /clusters/{CLUSTER-NAME}
        """
        await self._request("DELETE", f"clusters/{name}")

    @retry_on_atlas_error()
    async def get_cluster(self, name: str) -> Cluster:
        """
        Find a cluster by name.

        GET /clusters/{CLUSTER-NAME}
        """
        path = f"clusters/{name}"
        data = await self._request("GET", path)
        return self._parse_cluster(data, "GET", path)

    @retry_on_atlas_error()
    async def list_clusters(self) -> List[Cluster]:
        """
        List all clusters in the project.

        GET /clusters
        """
        data = await self._request("GET", "clusters", params={"itemsPerPage": self.page_size})
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise self._invalid_response("GET", "clusters", "cluster list has no results array")
        return [self._parse_cluster(item, "GET", "clusters") for item in results]

    def get_dashboard_url(self, cluster_name: str) -> str:
        """Return the Atlas UI URL of a cluster."""
        return f"{self.base_url}/v2/{self.group_id}#clusters/detail/{cluster_name}"

    async def ping(self) -> bool:
        """
        Check Atlas reachability and credentials.

        Returns:
            True if the project can be read, False otherwise
        """
        try:
            await self._request("GET", "")
            return True
        except (AtlasError, httpx.HTTPError) as e:
            logger.error("atlas_ping_failed", error=str(e))
            return False


# Global instance
atlas_client = AtlasClient.from_settings(settings)
