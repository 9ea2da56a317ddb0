"""Tests for content-addressed storage backends."""

from __future__ import annotations

import hashlib
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from biodid.core.config import CoreSettings
from biodid.core.exceptions import ContentNotFoundError, StoreReadError, StoreWriteError
from biodid.storage.content import (
    IPFSContentStore,
    LocalFileContentStore,
    MemoryContentStore,
    content_address,
    create_content_store,
)

DOC_BYTES = b'{"id":"did:bio:abc"}'


def _mock_ipfs(status: int = 200, json_data=None, text: str = "", body: bytes = b""):
    """Build a patched ClientSession returning one canned response."""
    mock_response = MagicMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=json_data)
    mock_response.text = AsyncMock(return_value=text)
    mock_response.read = AsyncMock(return_value=body)

    mock_session = MagicMock()
    mock_session.post = MagicMock(
        return_value=MagicMock(
            __aenter__=AsyncMock(return_value=mock_response),
            __aexit__=AsyncMock(return_value=False),
        )
    )
    return mock_session


def _patch_session(mock_session):
    patcher = patch("biodid.storage.content.aiohttp.ClientSession")
    mock_client = patcher.start()
    mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_session)
    mock_client.return_value.__aexit__ = AsyncMock(return_value=False)
    return patcher, mock_client


# ============================================================================
# content_address
# ============================================================================


class TestContentAddress:
    def test_is_sha256_hex(self):
        assert content_address(DOC_BYTES) == hashlib.sha256(DOC_BYTES).hexdigest()

    def test_differs_for_different_bytes(self):
        assert content_address(b"a") != content_address(b"b")


# ============================================================================
# MemoryContentStore
# ============================================================================


@pytest.mark.asyncio
class TestMemoryContentStore:
    async def test_put_then_get(self):
        store = MemoryContentStore()

        address = await store.put(DOC_BYTES)

        assert await store.get(address) == DOC_BYTES
        assert store.backend_type == "memory"

    async def test_identical_bytes_share_address(self):
        store = MemoryContentStore()

        first = await store.put(DOC_BYTES)
        second = await store.put(DOC_BYTES)

        assert first == second
        assert len(store) == 1

    async def test_unknown_address(self):
        store = MemoryContentStore()

        with pytest.raises(ContentNotFoundError) as exc_info:
            await store.get("deadbeef")
        assert exc_info.value.address == "deadbeef"

    async def test_exists_and_clear(self):
        store = MemoryContentStore()
        address = await store.put(DOC_BYTES)

        assert await store.exists(address)
        store.clear()
        assert not await store.exists(address)

    async def test_old_versions_remain_readable(self):
        store = MemoryContentStore()

        v1 = await store.put(b"version one")
        v2 = await store.put(b"version two")

        assert await store.get(v1) == b"version one"
        assert await store.get(v2) == b"version two"


# ============================================================================
# LocalFileContentStore
# ============================================================================


@pytest.mark.asyncio
class TestLocalFileContentStore:
    async def test_put_writes_sharded_file(self, tmp_path):
        store = LocalFileContentStore(tmp_path)

        address = await store.put(DOC_BYTES)

        path = tmp_path / address[:2] / f"{address}.blob"
        assert path.read_bytes() == DOC_BYTES
        assert store.backend_type == "local"

    async def test_get_roundtrip(self, tmp_path):
        store = LocalFileContentStore(tmp_path)
        address = await store.put(DOC_BYTES)

        assert await store.get(address) == DOC_BYTES

    async def test_no_tmp_files_left(self, tmp_path):
        store = LocalFileContentStore(tmp_path)
        await store.put(DOC_BYTES)

        assert list(tmp_path.rglob("*.tmp")) == []

    async def test_survives_new_instance(self, tmp_path):
        address = await LocalFileContentStore(tmp_path).put(DOC_BYTES)

        assert await LocalFileContentStore(tmp_path).get(address) == DOC_BYTES

    async def test_missing_blob(self, tmp_path):
        store = LocalFileContentStore(tmp_path)

        with pytest.raises(ContentNotFoundError):
            await store.get(content_address(b"never stored"))

    @pytest.mark.parametrize("address", ["", "../etc/passwd", "ZZZZ"])
    async def test_rejects_non_hex_address(self, tmp_path, address):
        store = LocalFileContentStore(tmp_path)

        with pytest.raises(ContentNotFoundError):
            await store.get(address)

    async def test_write_failure(self, tmp_path):
        store = LocalFileContentStore(tmp_path)

        with patch("pathlib.Path.write_bytes", side_effect=OSError("disk full")):
            with pytest.raises(StoreWriteError, match="disk full"):
                await store.put(DOC_BYTES)

    async def test_read_failure(self, tmp_path):
        store = LocalFileContentStore(tmp_path)
        address = await store.put(DOC_BYTES)

        with patch("pathlib.Path.read_bytes", side_effect=OSError("io error")):
            with pytest.raises(StoreReadError, match="io error"):
                await store.get(address)


# ============================================================================
# IPFSContentStore
# ============================================================================


@pytest.mark.asyncio
class TestIPFSContentStore:
    async def test_put_returns_cid(self):
        mock_session = _mock_ipfs(json_data={"Name": "document.json", "Hash": "QmCid123", "Size": "20"})
        patcher, _ = _patch_session(mock_session)
        try:
            store = IPFSContentStore("http://ipfs:5001/")
            cid = await store.put(DOC_BYTES)
        finally:
            patcher.stop()

        assert cid == "QmCid123"
        url = mock_session.post.call_args.args[0]
        assert url == "http://ipfs:5001/api/v0/add"
        assert mock_session.post.call_args.kwargs["params"] == {"pin": "true"}

    async def test_put_error_status(self):
        patcher, _ = _patch_session(_mock_ipfs(status=500, text="boom"))
        try:
            with pytest.raises(StoreWriteError, match="status 500"):
                await IPFSContentStore("http://ipfs:5001").put(DOC_BYTES)
        finally:
            patcher.stop()

    async def test_put_missing_hash(self):
        patcher, _ = _patch_session(_mock_ipfs(json_data={"Name": "document.json"}))
        try:
            with pytest.raises(StoreWriteError, match="did not include a CID"):
                await IPFSContentStore("http://ipfs:5001").put(DOC_BYTES)
        finally:
            patcher.stop()

    async def test_put_network_error(self):
        mock_session = MagicMock()
        mock_session.post = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))
        patcher, _ = _patch_session(mock_session)
        try:
            with pytest.raises(StoreWriteError, match="refused"):
                await IPFSContentStore("http://ipfs:5001").put(DOC_BYTES)
        finally:
            patcher.stop()

    async def test_get_returns_bytes(self):
        mock_session = _mock_ipfs(body=DOC_BYTES)
        patcher, _ = _patch_session(mock_session)
        try:
            data = await IPFSContentStore("http://ipfs:5001").get("QmCid123")
        finally:
            patcher.stop()

        assert data == DOC_BYTES
        assert mock_session.post.call_args.kwargs["params"] == {"arg": "QmCid123"}

    async def test_get_404(self):
        patcher, _ = _patch_session(_mock_ipfs(status=404))
        try:
            with pytest.raises(ContentNotFoundError):
                await IPFSContentStore("http://ipfs:5001").get("QmMissing")
        finally:
            patcher.stop()

    async def test_get_invalid_cid_body(self):
        patcher, _ = _patch_session(_mock_ipfs(status=500, text="invalid path \"nope\""))
        try:
            with pytest.raises(ContentNotFoundError):
                await IPFSContentStore("http://ipfs:5001").get("nope")
        finally:
            patcher.stop()

    async def test_get_other_error(self):
        patcher, _ = _patch_session(_mock_ipfs(status=502, text="bad gateway"))
        try:
            with pytest.raises(StoreReadError) as exc_info:
                await IPFSContentStore("http://ipfs:5001").get("QmCid123")
        finally:
            patcher.stop()

        assert not isinstance(exc_info.value, ContentNotFoundError)

    async def test_get_network_error(self):
        mock_session = MagicMock()
        mock_session.post = MagicMock(side_effect=aiohttp.ClientConnectionError("reset"))
        patcher, _ = _patch_session(mock_session)
        try:
            with pytest.raises(StoreReadError, match="reset"):
                await IPFSContentStore("http://ipfs:5001").get("QmCid123")
        finally:
            patcher.stop()


# ============================================================================
# create_content_store
# ============================================================================


class TestCreateContentStore:
    def test_memory(self, clean_env):
        store = create_content_store(CoreSettings(content_store="memory"))
        assert isinstance(store, MemoryContentStore)

    def test_local(self, clean_env, tmp_path):
        store = create_content_store(CoreSettings(content_store="local", content_path=str(tmp_path / "blobs")))
        assert isinstance(store, LocalFileContentStore)
        assert (tmp_path / "blobs").is_dir()

    def test_ipfs(self, clean_env):
        store = create_content_store(CoreSettings(content_store="ipfs", ipfs_api_url="http://node:5001"))
        assert isinstance(store, IPFSContentStore)
        assert store.api_url == "http://node:5001"

    def test_uses_global_config(self, monkeypatch, clean_env):
        monkeypatch.setenv("BIODID_CONTENT_STORE", "memory")

        assert isinstance(create_content_store(), MemoryContentStore)
