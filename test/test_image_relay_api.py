"""画像リレー API のエンドツーエンドテスト。

検証対象
- GET /api/proxy-image

Note:
    - 上流は httpx.MockTransport で差し替え、実ネットワークには出ない。
    - build_relay_client をパッチし、上流呼び出しの有無も検証する。
"""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

RELAY_CLIENT = "storefront_api.routes.media.build_relay_client"
IMMUTABLE = "public, max-age=31536000, immutable"


def _png_bytes() -> bytes:
    """1x1 PNG 画像のバイト列を返す。"""
    return (
        b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
        b"\x08\x04\x00\x00\x00\xb5\x1c\x0c\x02\x00\x00\x00\x0bIDATx\xdac\xfc\xff"
        b"\x1f\x00\x03\x03\x02\x00\xee\x98\xc4\x9d\x00\x00\x00\x00IEND\xaeB`\x82"
    )


def _mock_client(handler) -> httpx.AsyncClient:
    """handler を上流として振る舞う AsyncClient を返す補助関数。"""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


class TestMissingUrl:
    """url パラメータ未指定のテスト。"""

    def test_missing_url_returns_400(self, client: TestClient) -> None:
        """url が無い場合は 400 と error フィールドを返す。"""
        resp = client.get("/api/proxy-image")

        assert resp.status_code == 400
        assert resp.json() == {"error": "URL is required"}

    def test_empty_url_returns_400(self, client: TestClient) -> None:
        """url が空文字の場合も 400 を返す。"""
        resp = client.get("/api/proxy-image", params={"url": ""})

        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_missing_url_makes_no_upstream_call(self, client: TestClient) -> None:
        """url が無い場合は上流クライアントを生成しない。"""
        with patch(RELAY_CLIENT) as build:
            client.get("/api/proxy-image")

        build.assert_not_called()


class TestRelaySuccess:
    """上流取得成功時のテスト。"""

    def test_body_is_relayed_byte_for_byte(self, client: TestClient) -> None:
        """本文は上流のバイト列と完全一致する。"""
        body = _png_bytes()
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, content=body, headers={"Content-Type": "image/png"})

        with patch(RELAY_CLIENT, return_value=_mock_client(handler)):
            resp = client.get(
                "/api/proxy-image", params={"url": "https://cdn.example.com/a.png"}
            )

        assert resp.status_code == 200
        assert resp.content == body
        assert resp.headers["content-type"] == "image/png"
        assert seen == ["https://cdn.example.com/a.png"]

    def test_cache_and_cors_headers(self, client: TestClient) -> None:
        """長期 immutable キャッシュと CORS 許可ヘッダーが付与される。"""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=b"img",
                headers={"Content-Type": "image/jpeg", "Cache-Control": "no-store"},
            )

        with patch(RELAY_CLIENT, return_value=_mock_client(handler)):
            resp = client.get("/api/proxy-image", params={"url": "https://x.example/b.jpg"})

        assert resp.headers["cache-control"] == IMMUTABLE
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_missing_content_type_defaults_to_webp(self, client: TestClient) -> None:
        """上流が Content-Type を返さない場合は image/webp になる。"""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"RIFF....WEBP")

        with patch(RELAY_CLIENT, return_value=_mock_client(handler)):
            resp = client.get("/api/proxy-image", params={"url": "https://x.example/c"})

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/webp"
        assert resp.content == b"RIFF....WEBP"

    def test_upstream_error_status_is_still_relayed(self, client: TestClient) -> None:
        """上流のステータスは検査せず、本文を 200 で中継する。"""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, content=b"not here", headers={"Content-Type": "text/plain"})

        with patch(RELAY_CLIENT, return_value=_mock_client(handler)):
            resp = client.get("/api/proxy-image", params={"url": "https://x.example/missing"})

        assert resp.status_code == 200
        assert resp.content == b"not here"
        assert resp.headers["content-type"] == "text/plain"


class TestRelayFailure:
    """上流取得失敗時のテスト。"""

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("name resolution failed"),
            httpx.ReadTimeout("no response"),
        ],
    )
    def test_fetch_exception_returns_500(self, client: TestClient, error: Exception) -> None:
        """取得中の例外は 500 と構造化エラーになり、ハンドラ外へ漏れない。"""

        def handler(request: httpx.Request) -> httpx.Response:
            raise error

        with patch(RELAY_CLIENT, return_value=_mock_client(handler)):
            resp = client.get("/api/proxy-image", params={"url": "https://down.example/d.png"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to fetch image"}

    def test_failure_is_logged(self, client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
        """取得失敗はログに記録される。"""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        with patch(RELAY_CLIENT, return_value=_mock_client(handler)):
            with caplog.at_level("ERROR", logger="storefront_api.routes.media"):
                client.get("/api/proxy-image", params={"url": "https://down.example/e.png"})

        assert any("Proxy error" in record.getMessage() for record in caplog.records)


class TestAllowList:
    """RELAY_ALLOWED_HOSTS のテスト。"""

    def test_disallowed_host_returns_400(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """許可リスト外のホストは上流に触れず 400 を返す。"""
        monkeypatch.setenv("RELAY_ALLOWED_HOSTS", "cdn.example.com")

        with patch(RELAY_CLIENT) as build:
            resp = client.get("/api/proxy-image", params={"url": "http://169.254.169.254/"})

        assert resp.status_code == 400
        assert resp.json() == {"error": "URL host is not allowed"}
        build.assert_not_called()

    def test_unparsable_host_returns_400(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """ホスト部を解釈できない URL も許可リスト外として 400 を返す。"""
        monkeypatch.setenv("RELAY_ALLOWED_HOSTS", "cdn.example.com")

        with patch(RELAY_CLIENT) as build:
            resp = client.get("/api/proxy-image", params={"url": "http://[::1/x.png"})

        assert resp.status_code == 400
        assert resp.json() == {"error": "URL host is not allowed"}
        build.assert_not_called()

    def test_allowed_host_is_relayed(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """許可リスト内のホストは通常どおり中継する（大文字小文字は区別しない）。"""
        monkeypatch.setenv("RELAY_ALLOWED_HOSTS", "CDN.example.com, img.example.com")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"ok", headers={"Content-Type": "image/gif"})

        with patch(RELAY_CLIENT, return_value=_mock_client(handler)):
            resp = client.get("/api/proxy-image", params={"url": "https://cdn.example.com/f.gif"})

        assert resp.status_code == 200
        assert resp.content == b"ok"
