"""Unit tests for uploadgate/storage/memory_store.py."""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

from uploadgate.storage.memory_store import MemoryObjectStore
from uploadgate.storage.protocol import ObjectStore


class TestMemoryObjectStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(MemoryObjectStore(), ObjectStore)

    async def test_write_and_get(self) -> None:
        store = MemoryObjectStore()
        await store.write(
            "applications/app1/a.png", b"abc", content_type="image/png", metadata={"size": "3"}
        )
        obj = store.get("applications/app1/a.png")
        assert obj is not None
        assert obj.data == b"abc"
        assert obj.content_type == "image/png"
        assert obj.metadata == {"size": "3"}
        assert "applications/app1/a.png" in store
        assert len(store) == 1

    async def test_last_write_wins(self) -> None:
        store = MemoryObjectStore()
        for data in (b"one", b"two"):
            await store.write("k", data, content_type="image/png", metadata={})
        assert store.get("k").data == b"two"  # type: ignore[union-attr]
        assert len(store) == 1

    async def test_signed_url_shape(self) -> None:
        store = MemoryObjectStore(bucket="uploads", public_base_url="http://test/objects/")
        url = await store.sign_download_url("applications/app1/my cat.png", ttl=timedelta(days=7))
        parts = urlsplit(url)
        assert parts.path == "/objects/uploads/applications/app1/my%20cat.png"
        query = parse_qs(parts.query)
        assert set(query) == {"expires", "signature"}

    async def test_resolve_url(self) -> None:
        store = MemoryObjectStore()
        await store.write("applications/app1/a.png", b"abc", content_type="image/png", metadata={})
        url = await store.sign_download_url("applications/app1/a.png", ttl=timedelta(days=7))
        assert store.resolve_url(url).data == b"abc"  # type: ignore[union-attr]

    async def test_tampered_url_rejected(self) -> None:
        store = MemoryObjectStore()
        await store.write("applications/app1/a.png", b"abc", content_type="image/png", metadata={})
        await store.write("applications/app2/b.png", b"xyz", content_type="image/png", metadata={})
        url = await store.sign_download_url("applications/app1/a.png", ttl=timedelta(days=7))
        assert store.resolve_url(url.replace("app1/a.png", "app2/b.png")) is None

    async def test_expired_url_rejected(self) -> None:
        store = MemoryObjectStore()
        await store.write("k", b"abc", content_type="image/png", metadata={})
        url = await store.sign_download_url("k", ttl=timedelta(seconds=-10))
        assert store.resolve_url(url) is None

    async def test_other_store_signature_rejected(self) -> None:
        signer = MemoryObjectStore(secret=b"one")
        verifier = MemoryObjectStore(secret=b"two")
        await verifier.write("k", b"abc", content_type="image/png", metadata={})
        url = await signer.sign_download_url("k", ttl=timedelta(days=1))
        assert verifier.resolve_url(url) is None
