"""
Cluster request layer for Index Retention
One request in, one ClusterResponse out. Retention stages only see this
interface; how requests are authenticated is decided by build_cluster_client.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from index_retention.config import Settings
from index_retention.services.request_signing import (
    RequestSigningError,
    SigV4RequestSigner,
    region_from_endpoint,
)

logger = logging.getLogger(__name__)


class ClusterRequestError(Exception):
    """Base exception for cluster request failures"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def details(self) -> Dict[str, Any]:
        return {"statusCode": self.status_code, "responseBody": self.body}


class ClusterTransportError(ClusterRequestError):
    """Raised when the cluster cannot be reached or the request times out"""

    pass


class ClusterStatusError(ClusterRequestError):
    """Raised when the cluster answers with a non-2xx status"""

    pass


class ClusterPayloadError(ClusterRequestError):
    """Raised when the response body is unusable or reports an error"""

    pass


@dataclass
class ClusterResponse:
    status_code: int
    text: str
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def ensure_ok(response: ClusterResponse) -> Any:
    """Return the decoded body of a successful response or raise."""
    if not response.ok:
        raise ClusterStatusError(
            f"Cluster returned status {response.status_code}",
            status_code=response.status_code,
            body=response.text,
        )

    payload = response.body
    if payload is None:
        raise ClusterPayloadError(
            "Response body is not valid JSON",
            status_code=response.status_code,
            body=response.text,
        )

    # AWS front-end errors carry "Message", Elasticsearch errors carry "error"
    if isinstance(payload, dict) and (
        payload.get("Message") is not None or payload.get("error") is not None
    ):
        raise ClusterPayloadError(
            "Response body reports an error",
            status_code=response.status_code,
            body=response.text,
        )

    return payload


def _decode(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


class ClusterClient:
    """Executes single requests against the cluster."""

    def __init__(self, settings: Settings):
        self.endpoint = settings.endpoint
        self.base_url = settings.base_url

    @staticmethod
    def target(path: str, query: Optional[str] = None) -> str:
        target = "/" + path.lstrip("/")
        if query:
            target += "?" + query
        return target

    def url_for(self, path: str, query: Optional[str] = None) -> str:
        return self.base_url + self.target(path, query)

    async def execute(
        self, method: str, path: str, query: Optional[str] = None
    ) -> ClusterResponse:
        raise NotImplementedError

    async def close(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class SignedHttpClusterClient(ClusterClient):
    """httpx transport with SigV4-signed requests (Amazon OpenSearch Service)."""

    def __init__(
        self,
        settings: Settings,
        signer: Optional[SigV4RequestSigner] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(settings)
        if signer is None:
            region = settings.aws_region or region_from_endpoint(settings.endpoint)
            signer = SigV4RequestSigner(region=region, service=settings.aws_service)
        self.signer = signer
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.request_timeout
        )

    async def execute(
        self, method: str, path: str, query: Optional[str] = None
    ) -> ClusterResponse:
        url = self.url_for(path, query)
        headers = {"host": self.endpoint, "Content-Type": "application/json"}

        try:
            # Credential resolution may hit the instance metadata service
            headers = await asyncio.to_thread(self.signer.sign, method, url, headers)
        except RequestSigningError as e:
            raise ClusterTransportError(f"Unable to sign {method} {url}: {e}") from e

        try:
            response = await self.http_client.request(method, url, headers=headers)
        except httpx.HTTPError as e:
            raise ClusterTransportError(f"{method} {url} failed: {e}") from e

        return ClusterResponse(
            status_code=response.status_code,
            text=response.text,
            body=_decode(response.text),
        )

    async def close(self):
        await self.http_client.aclose()


class ElasticsearchClusterClient(ClusterClient):
    """elasticsearch-py transport for self-managed clusters without signing."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[AsyncElasticsearch] = None,
    ):
        super().__init__(settings)
        self.client = client or AsyncElasticsearch(
            settings.node_url, request_timeout=settings.request_timeout
        )

    async def execute(
        self, method: str, path: str, query: Optional[str] = None
    ) -> ClusterResponse:
        try:
            response = await self.client.perform_request(
                method,
                self.target(path, query),
                headers={"accept": "application/json"},
            )
        except ApiError as e:
            return ClusterResponse(
                status_code=e.meta.status, text=json.dumps(e.body), body=e.body
            )
        except TransportError as e:
            raise ClusterTransportError(
                f"{method} {self.url_for(path, query)} failed: {e}"
            ) from e

        return ClusterResponse(
            status_code=response.meta.status,
            text=json.dumps(response.body),
            body=response.body,
        )

    async def close(self):
        await self.client.close()
        logger.info("Elasticsearch connection closed")


def build_cluster_client(settings: Settings) -> ClusterClient:
    if settings.request_signing == "sigv4":
        return SignedHttpClusterClient(settings)
    return ElasticsearchClusterClient(settings)
