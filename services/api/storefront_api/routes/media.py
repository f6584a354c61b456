"""画像リレー（プロキシ）API ルート。

提供エンドポイント
- GET /api/proxy-image?url=<絶対 URL>

設計方針
- ブラウザからは同一オリジンの画像として見せ、CORS 失敗を回避する
- 1リクエストにつき上流へ GET を1回だけ送る（リトライなし）
- レスポンス本文は上流のバイト列をそのまま返す（変換しない）
- キャッシュ方針はこのサーバー側で一律に付与する
- エラー本文は {"error": "..."} 形式に固定する（HTTPException の detail 形式は使わない）
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

import httpx
from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response

from storefront_api.config import get_settings
from storefront_api.logging_config import get_logger

router = APIRouter(prefix="/api", tags=["media"])

logger = get_logger(__name__)

DEFAULT_IMAGE_CONTENT_TYPE = "image/webp"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"

ERROR_URL_REQUIRED = "URL is required"
ERROR_HOST_NOT_ALLOWED = "URL host is not allowed"
ERROR_FETCH_FAILED = "Failed to fetch image"


def build_relay_client() -> httpx.AsyncClient:
    """上流取得用の HTTP クライアントを生成する。

    Note:
        - 呼び出しごとに生成し、リクエスト間で状態を共有しない。
        - ブラウザの fetch と同様にリダイレクトを追従する。
        - タイムアウトは httpx の既定値のまま上書きしない。
    """
    return httpx.AsyncClient(follow_redirects=True)


def _is_host_allowed(url: str, allowed_hosts: tuple[str, ...]) -> bool:
    """URL のホストが許可リストに含まれるかを返す。

    Note:
        - 許可リストが空の場合は常に True（制限なし）。
        - ホスト部を解釈できない URL は False。
    """
    if not allowed_hosts:
        return True
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        # ホストを解釈できない URL は許可しない。
        return False
    return host in allowed_hosts


def _error(status_code: int, message: str) -> JSONResponse:
    """リレー用の構造化エラーレスポンスを返す。"""
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("/proxy-image")
async def proxy_image(url: Optional[str] = None) -> Response:
    """指定 URL の画像をサーバー側で取得し、そのまま中継する。

    処理フロー:
        1. url 未指定なら 400（上流呼び出しは行わない）
        2. 許可ホスト設定がある場合はホストを検査（不許可なら 400）
        3. 上流へ GET し、本文を読み切る
        4. Content-Type / Cache-Control / CORS ヘッダーを付けて 200 で返す

    エラー:
        - url 未指定: HTTP 400 {"error": "URL is required"}
        - 取得・本文読み込み中の例外: HTTP 500 {"error": "Failed to fetch image"}
    """
    if not url:
        return _error(400, ERROR_URL_REQUIRED)

    settings = get_settings()
    if not _is_host_allowed(url, settings.relay_allowed_hosts):
        logger.warning("Relay rejected host outside allow-list: %s", url)
        return _error(400, ERROR_HOST_NOT_ALLOWED)

    try:
        async with build_relay_client() as client:
            upstream = await client.get(url)
            # 本文をここで読み切る。読み込み中の失敗も 500 に集約する。
            body = await upstream.aread()
    except Exception:  # noqa: BLE001
        # 想定外を含むすべての取得失敗はログに残し、500 に集約する。
        logger.exception("Proxy error while fetching %s", url)
        return _error(500, ERROR_FETCH_FAILED)

    # 上流のステータスは検査せず、取得できた本文をそのまま中継する。
    content_type = upstream.headers.get("content-type") or DEFAULT_IMAGE_CONTENT_TYPE
    # media_type ではなくヘッダーで渡し、charset の自動付与を避けて上流の値をそのまま返す。
    return Response(
        content=body,
        status_code=200,
        headers={
            "Content-Type": content_type,
            "Cache-Control": IMMUTABLE_CACHE_CONTROL,
            "Access-Control-Allow-Origin": "*",
        },
    )
