"""HTTP client for the Pinata pinning API (content-addressed storage)."""

from __future__ import annotations

from typing import Any

import httpx

from certmint.core.config import Settings
from certmint.core.errors import PinningError
from certmint.core.logging import get_logger

logger = get_logger(__name__)


class PinataClient:
    """Pins raw files and JSON documents, returning gateway URLs."""

    def __init__(
        self,
        api_key: str,
        secret_api_key: str,
        *,
        api_url: str = "https://api.pinata.cloud",
        gateway_url: str = "https://ipfs.io",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.gateway_url = gateway_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "pinata_api_key": api_key,
            "pinata_secret_api_key": secret_api_key,
        }

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> PinataClient:
        return cls(
            settings.PINATA_API_KEY,
            settings.PINATA_SECRET_API_KEY,
            api_url=settings.PINATA_API_URL,
            gateway_url=settings.IPFS_GATEWAY_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            client=client,
        )

    def gateway_link(self, ipfs_hash: str) -> str:
        return f"{self.gateway_url}/ipfs/{ipfs_hash}"

    async def pin_file(self, content: bytes, filename: str, content_type: str = "image/jpeg") -> str:
        """Pin raw bytes.  Returns the gateway URL of the pinned file."""
        response = await self._client.post(
            f"{self.api_url}/pinning/pinFileToIPFS",
            headers=self._headers,
            files={"file": (filename, content, content_type)},
        )
        ipfs_hash = self._ipfs_hash(response, "pinFileToIPFS", filename)
        logger.info("File pinned", filename=filename, ipfs_hash=ipfs_hash, size=len(content))
        return self.gateway_link(ipfs_hash)

    async def pin_json(self, document: dict[str, Any], name: str) -> str:
        """Pin a JSON document.  Returns the gateway URL of the pinned document."""
        response = await self._client.post(
            f"{self.api_url}/pinning/pinJSONToIPFS",
            headers=self._headers,
            json={"pinataContent": document, "pinataMetadata": {"name": name}},
        )
        ipfs_hash = self._ipfs_hash(response, "pinJSONToIPFS", name)
        logger.info("JSON pinned", name=name, ipfs_hash=ipfs_hash)
        return self.gateway_link(ipfs_hash)

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _ipfs_hash(response: httpx.Response, operation: str, name: str) -> str:
        if not response.is_success:
            raise PinningError(
                f"Pinata {operation} returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
                details={"name": name},
            )
        ipfs_hash = response.json().get("IpfsHash")
        if not ipfs_hash:
            raise PinningError(
                f"Pinata {operation} response has no IpfsHash",
                status_code=response.status_code,
                response_body=response.text,
                details={"name": name},
            )
        return ipfs_hash
