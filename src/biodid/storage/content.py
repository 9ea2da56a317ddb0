# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Content-addressed blob storage for serialized identity documents.

Every backend implements the same two calls:

- ``put(data) -> address``: store bytes, return an address derived from the
  content. Storing identical bytes twice returns the same address.
- ``get(address) -> bytes``: fetch bytes back, raising
  :class:`~biodid.core.exceptions.ContentNotFoundError` for unknown
  addresses.

Blobs are never overwritten or deleted, so every previous version of a
document stays fetchable by its address.

Supported backends:
- Memory (for testing)
- Local file system
- IPFS (HTTP API of a Kubo-compatible node)
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import aiohttp

from ..core.config import CoreSettings, get_config
from ..core.exceptions import ContentNotFoundError, StoreReadError, StoreWriteError

logger = logging.getLogger(__name__)


def content_address(data: bytes) -> str:
    """Derive the address the memory and local backends use for ``data``."""
    return hashlib.sha256(data).hexdigest()


class ContentStore(ABC):
    """Abstract base class for content stores."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Type of backend (e.g., 'memory', 'local', 'ipfs')."""

    @abstractmethod
    async def put(self, data: bytes) -> str:
        """Store ``data`` and return its content address.

        Raises:
            StoreWriteError: If the write fails
        """

    @abstractmethod
    async def get(self, address: str) -> bytes:
        """Return the bytes stored at ``address``.

        Raises:
            ContentNotFoundError: If nothing is stored at the address
            StoreReadError: If the read fails
        """

    async def exists(self, address: str) -> bool:
        """Check whether a blob is stored at ``address``."""
        try:
            await self.get(address)
        except ContentNotFoundError:
            return False
        return True


class MemoryContentStore(ContentStore):
    """In-memory content store for testing.

    Stores blobs in a dictionary keyed by their SHA-256 digest. Not persistent.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    @property
    def backend_type(self) -> str:
        return "memory"

    async def put(self, data: bytes) -> str:
        address = content_address(data)
        self._blobs.setdefault(address, bytes(data))
        return address

    async def get(self, address: str) -> bytes:
        try:
            return self._blobs[address]
        except KeyError:
            raise ContentNotFoundError(address) from None

    async def exists(self, address: str) -> bool:
        return address in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)

    def clear(self) -> None:
        """Drop all stored blobs."""
        self._blobs.clear()


class LocalFileContentStore(ContentStore):
    """Local file system content store.

    Stores each blob as ``<base>/<first two hex chars>/<address>.blob``.
    """

    def __init__(self, base_path: str | Path):
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> str:
        return "local"

    def _blob_path(self, address: str) -> Path:
        # Use first 2 chars as subdirectory for better file distribution
        subdir = address[:2] if len(address) >= 2 else "00"
        return self._base_path / subdir / f"{address}.blob"

    async def put(self, data: bytes) -> str:
        address = content_address(data)
        path = self._blob_path(address)
        if path.exists():
            return address
        try:
            path.parent.mkdir(exist_ok=True)
            # Write then rename so readers never see a partial blob
            tmp_path = path.with_suffix(".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except OSError as e:
            logger.error("Failed to write blob %s: %s", address, e)
            raise StoreWriteError(f"Failed to write blob {address}: {e}") from e
        return address

    async def get(self, address: str) -> bytes:
        # Addresses are hex digests; anything else cannot name a stored blob
        if not address or any(c not in "0123456789abcdef" for c in address):
            raise ContentNotFoundError(address)
        path = self._blob_path(address)
        if not path.exists():
            raise ContentNotFoundError(address)
        try:
            return path.read_bytes()
        except OSError as e:
            logger.error("Failed to read blob %s: %s", address, e)
            raise StoreReadError(f"Failed to read blob {address}: {e}") from e


class IPFSContentStore(ContentStore):
    """Content store backed by the HTTP API of an IPFS node.

    Addresses are the CIDs the node returns from ``/api/v0/add``. Added
    content is pinned so the node's garbage collector keeps old versions.
    """

    def __init__(self, api_url: str, timeout: float = 30.0):
        self._api_url = api_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def backend_type(self) -> str:
        return "ipfs"

    @property
    def api_url(self) -> str:
        return self._api_url

    async def put(self, data: bytes) -> str:
        url = f"{self._api_url}/api/v0/add"
        form = aiohttp.FormData()
        form.add_field("file", data, filename="document.json", content_type="application/json")

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(url, data=form, params={"pin": "true"}) as response:
                    if response.status != 200:
                        body = await response.text()
                        raise StoreWriteError(
                            f"IPFS add failed with status {response.status}: {body}",
                            {"status": response.status},
                        )
                    payload = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            logger.error("Network error adding content to IPFS at %s: %s", url, e)
            raise StoreWriteError(f"IPFS add failed: {e}") from e

        cid = payload.get("Hash") if isinstance(payload, dict) else None
        if not cid:
            raise StoreWriteError("IPFS add response did not include a CID")
        logger.debug("Stored %d bytes in IPFS as %s", len(data), cid)
        return cid

    async def get(self, address: str) -> bytes:
        url = f"{self._api_url}/api/v0/cat"

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(url, params={"arg": address}) as response:
                    if response.status == 404:
                        raise ContentNotFoundError(address)
                    if response.status != 200:
                        body = await response.text()
                        if "not found" in body.lower() or "invalid" in body.lower():
                            raise ContentNotFoundError(address)
                        raise StoreReadError(
                            f"IPFS cat failed with status {response.status}: {body}",
                            {"status": response.status},
                        )
                    return await response.read()
        except aiohttp.ClientError as e:
            logger.error("Network error reading %s from IPFS: %s", address, e)
            raise StoreReadError(f"IPFS cat failed for {address}: {e}") from e


def create_content_store(config: CoreSettings | None = None) -> ContentStore:
    """Build the content store selected by ``BIODID_CONTENT_STORE``."""
    config = config or get_config()
    if config.content_store == "memory":
        return MemoryContentStore()
    if config.content_store == "local":
        return LocalFileContentStore(config.content_path)
    return IPFSContentStore(config.ipfs_api_url, timeout=config.ipfs_timeout)
