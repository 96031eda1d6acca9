# tests/test_storage.py
import httpx
import pytest

from classifieds.exceptions import StorageError
from classifieds.storage import StorageClient, object_path_from_url, purge_images

from conftest import FakeObjectStore, image_urls


@pytest.mark.parametrize("url,expected", [
    ("https://x.co/storage/v1/object/public/listings/u1/photo.jpg", "u1/photo.jpg"),
    ("https://x.co/storage/v1/object/public/listings/u1/photo.jpg?v=2", "u1/photo.jpg"),
    ("https://x.co/storage/v1/object/public/avatars/u1/photo.jpg", None),
    ("https://x.co/storage/v1/object/public/listings/", None),
    ("", None),
])
def test_object_path_from_url(url, expected):
    assert object_path_from_url(url, "listings") == expected


def _client(handler):
    return StorageClient(
        base_url="https://x.co/storage/v1",
        service_key="service-key",
        bucket="listings",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        retry_delay=0,
    )


def test_delete_sends_authenticated_request():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"message": "ok"})

    assert _client(handler).delete("u1/photo.jpg") is True
    assert seen[0].method == "DELETE"
    assert str(seen[0].url) == "https://x.co/storage/v1/object/listings/u1/photo.jpg"
    assert seen[0].headers["Authorization"] == "Bearer service-key"


def test_delete_missing_object_is_not_an_error():
    assert _client(lambda request: httpx.Response(404)).delete("u1/none.jpg") is False


def test_delete_server_error_raises():
    with pytest.raises(StorageError):
        _client(lambda request: httpx.Response(500)).delete("u1/photo.jpg")


def test_delete_retries_transport_errors():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] < 3:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200)

    assert _client(handler).delete("u1/photo.jpg") is True
    assert calls["n"] == 3


def test_purge_images_counts_unrecognised_urls_as_failures():
    store = FakeObjectStore()
    deleted, failed = purge_images(store, image_urls("a.jpg") + ["https://elsewhere.net/b.jpg"])
    assert (deleted, failed) == (1, 1)
    assert store.attempted == ["owner-1/a.jpg"]
