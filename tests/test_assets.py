"""Tests for asset resolvers and the image codec."""

import cv2
import numpy as np
import pytest
import requests

from conftest import RED_BGR, gradient_image, solid_image
from mockup_compositor.errors import AssetResolutionError, UnsupportedFormatError
from mockup_compositor.io.image_codec import decode_image, encode_image, normalize_format, to_color_8bit
from mockup_compositor.pipeline.assets import (
    HttpAssetResolver,
    InMemoryAssetResolver,
    LocalAssetResolver,
    RoutingAssetResolver,
    create_resolver,
)


class _FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400


class TestImageCodec:
    @pytest.mark.parametrize("name,expected", [("png", "png"), ("JPG", "jpg"), ("jpeg", "jpg"), (".png", "png")])
    def test_normalize_format(self, name, expected):
        assert normalize_format(name) == expected

    def test_unknown_format_raises(self):
        with pytest.raises(UnsupportedFormatError, match="webp"):
            normalize_format("webp")

    def test_png_is_lossless(self):
        image = gradient_image(32, 16, seed=2)
        np.testing.assert_array_equal(decode_image(encode_image(image, "png")), image)

    def test_jpg_flattens_alpha(self):
        image = np.zeros((8, 8, 4), dtype=np.uint8)
        decoded = decode_image(encode_image(image, "jpg"))
        assert decoded.shape == (8, 8, 3)

    def test_jpeg_quality_changes_size(self):
        image = gradient_image(64, 64, seed=4)
        assert len(encode_image(image, "jpg", jpeg_quality=95)) > len(encode_image(image, "jpg", jpeg_quality=10))

    def test_gray_and_16_bit_promoted(self):
        gray = np.full((4, 4), 200, dtype=np.uint8)
        assert to_color_8bit(gray).shape == (4, 4, 3)
        deep = np.full((4, 4, 3), 65535, dtype=np.uint16)
        promoted = to_color_8bit(deep)
        assert promoted.dtype == np.uint8
        assert promoted.max() == 255

    def test_garbage_bytes_raise(self):
        with pytest.raises(AssetResolutionError, match="Could not decode"):
            decode_image(b"not an image", label="frames/x.png")

    def test_empty_bytes_raise(self):
        with pytest.raises(AssetResolutionError, match="Empty"):
            decode_image(b"")


class TestInMemoryAssetResolver:
    def test_arrays_are_copied(self):
        red = solid_image(4, 4, RED_BGR)
        resolver = InMemoryAssetResolver({"red": red})

        fetched = resolver.fetch_image("red")["pixels"]
        fetched[:] = 0

        assert tuple(resolver.fetch_image("red")["pixels"][0, 0]) == RED_BGR

    def test_bytes_are_decoded(self):
        resolver = InMemoryAssetResolver({"red.png": encode_image(solid_image(6, 3, RED_BGR), "png")})
        image = resolver.fetch_image("red.png")
        assert (image["width"], image["height"]) == (6, 3)

    def test_missing_ref_raises(self):
        with pytest.raises(AssetResolutionError, match="Asset not found: nope"):
            InMemoryAssetResolver().fetch_bytes("nope")


class TestLocalAssetResolver:
    def test_reads_file_below_root(self, tmp_path):
        (tmp_path / "frames").mkdir()
        cv2.imwrite(str(tmp_path / "frames" / "a.png"), solid_image(5, 7, RED_BGR))
        resolver = LocalAssetResolver(tmp_path)

        image = resolver.fetch_image("/frames/a.png")

        assert (image["width"], image["height"]) == (5, 7)

    def test_rejects_path_escape(self, tmp_path):
        resolver = LocalAssetResolver(tmp_path / "assets")
        with pytest.raises(AssetResolutionError, match="escapes"):
            resolver.fetch_bytes("../secret.png")

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(AssetResolutionError, match="Cannot read asset"):
            LocalAssetResolver(tmp_path).fetch_bytes("missing.png")


class TestHttpAssetResolver:
    def test_fetches_with_timeout(self, monkeypatch):
        calls = []

        def fake_get(url, timeout):
            calls.append((url, timeout))
            return _FakeResponse(b"payload")

        monkeypatch.setattr(requests, "get", fake_get)

        assert HttpAssetResolver(timeout_s=5).fetch_bytes("https://cdn.example/a.png") == b"payload"
        assert calls == [("https://cdn.example/a.png", 5)]

    def test_http_error_status_raises(self, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda url, timeout: _FakeResponse(status_code=404))
        with pytest.raises(AssetResolutionError, match="404"):
            HttpAssetResolver().fetch_bytes("https://cdn.example/missing.png")

    def test_connection_error_raises(self, monkeypatch):
        def fake_get(url, timeout):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(requests, "get", fake_get)
        with pytest.raises(AssetResolutionError, match="refused"):
            HttpAssetResolver().fetch_bytes("http://cdn.example/a.png")

    def test_non_url_rejected(self):
        with pytest.raises(AssetResolutionError):
            HttpAssetResolver().fetch_bytes("frames/a.png")


class TestRoutingAssetResolver:
    def test_routes_by_scheme(self):
        local = InMemoryAssetResolver({"frames/a.png": b"local"})
        remote = InMemoryAssetResolver({"https://cdn.example/a.png": b"remote"})
        resolver = RoutingAssetResolver(local, remote)

        assert resolver.fetch_bytes("frames/a.png") == b"local"
        assert resolver.fetch_bytes("https://cdn.example/a.png") == b"remote"

    def test_create_resolver(self, tmp_path):
        resolver = create_resolver(str(tmp_path), http_timeout_s=3)
        assert resolver.local.root == tmp_path.resolve()
        assert resolver.remote.timeout_s == 3
