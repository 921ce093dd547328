"""
Sanity CMS client
Thin wrapper over the Sanity HTTP query, mutate and assets APIs
"""

import json
import logging
from typing import Any, Optional

import httpx

from ..config import SANITY_API_VERSION, SANITY_DATASET, SANITY_PROJECT_ID, SANITY_WRITE_TOKEN

logger = logging.getLogger(__name__)


class CMSError(Exception):
    """Raised when the CMS rejects a request or cannot be reached"""


class SanityClient:
    """Read/write access to the site's Sanity dataset"""

    def __init__(
        self,
        project_id: Optional[str] = SANITY_PROJECT_ID,
        dataset: str = SANITY_DATASET,
        api_version: str = SANITY_API_VERSION,
        token: Optional[str] = SANITY_WRITE_TOKEN,
        timeout: float = 30.0,
    ):
        self.project_id = project_id
        self.dataset = dataset
        self.api_version = api_version.lstrip("v")
        self.token = token
        self.timeout = timeout

        if not self.project_id:
            logger.warning("SANITY_PROJECT_ID not set; CMS-backed endpoints will return 503")

    def is_configured(self) -> bool:
        return bool(self.project_id)

    def can_write(self) -> bool:
        return bool(self.project_id and self.token)

    @property
    def base_url(self) -> str:
        return f"https://{self.project_id}.api.sanity.io/v{self.api_version}"

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def fetch(self, query: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Run a GROQ query and return its `result`"""
        if not self.is_configured():
            raise CMSError("Sanity project is not configured")

        query_params = {"query": query}
        for name, value in (params or {}).items():
            query_params[f"${name}"] = json.dumps(value)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as http_client:
                response = await http_client.get(
                    f"{self.base_url}/data/query/{self.dataset}",
                    params=query_params,
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Sanity query failed: {e}")
            raise CMSError(f"Sanity query failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"❌ Sanity query error {response.status_code}: {response.text[:300]}")
            raise CMSError(f"Sanity query returned HTTP {response.status_code}")

        return response.json().get("result")

    async def mutate(self, mutations: list[dict]) -> dict:
        if not self.can_write():
            raise CMSError("Sanity write token is not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as http_client:
                response = await http_client.post(
                    f"{self.base_url}/data/mutate/{self.dataset}",
                    params={"returnIds": "true", "returnDocuments": "true"},
                    json={"mutations": mutations},
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Sanity mutation failed: {e}")
            raise CMSError(f"Sanity mutation failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"❌ Sanity mutation error {response.status_code}: {response.text[:300]}")
            raise CMSError(f"Sanity mutation returned HTTP {response.status_code}")

        return response.json()

    async def create(self, document: dict) -> dict:
        """Create a document and return it as stored"""
        result = await self.mutate([{"create": document}])
        results = result.get("results") or [{}]
        return results[0].get("document") or {"_id": results[0].get("id"), **document}

    async def patch_set(self, document_id: str, fields: dict) -> dict:
        return await self.mutate([{"patch": {"id": document_id, "set": fields}}])

    async def patch_inc(self, document_id: str, fields: dict) -> dict:
        """Increment numeric fields, starting missing ones at zero"""
        missing = {name: 0 for name in fields}
        return await self.mutate([{"patch": {"id": document_id, "setIfMissing": missing, "inc": fields}}])

    async def upload_asset(
        self, content: bytes, filename: str, content_type: str, kind: str = "images"
    ) -> dict:
        """
        Upload a binary asset.

        Args:
            content: File bytes
            filename: Original filename (kept as asset metadata)
            content_type: MIME type sent as Content-Type
            kind: "images" or "files"

        Returns:
            The created asset document (contains `_id`)
        """
        if not self.can_write():
            raise CMSError("Sanity write token is not configured")

        headers = self._headers()
        headers["Content-Type"] = content_type or "application/octet-stream"
        try:
            async with httpx.AsyncClient(timeout=60.0) as http_client:
                response = await http_client.post(
                    f"{self.base_url}/assets/{kind}/{self.dataset}",
                    params={"filename": filename},
                    content=content,
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Sanity asset upload failed: {e}")
            raise CMSError(f"Sanity asset upload failed: {e}") from e

        if response.status_code not in (200, 201):
            logger.error(f"❌ Sanity asset upload error {response.status_code}: {response.text[:300]}")
            raise CMSError(f"Sanity asset upload returned HTTP {response.status_code}")

        return response.json().get("document", {})


_sanity_client: Optional[SanityClient] = None


def get_sanity_client() -> SanityClient:
    """FastAPI dependency returning the shared CMS client"""
    global _sanity_client
    if _sanity_client is None:
        _sanity_client = SanityClient()
    return _sanity_client
