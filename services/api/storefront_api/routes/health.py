"""稼働確認 API ルート。

提供エンドポイント
- GET /health       : プロセスの稼働確認（外部依存を見ない）
- GET /health/ready : 印刷ブリッジの読み込み状態を含む準備状況
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from storefront_api.print_bridge.loader import get_print_bridge_loader

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:
    """アプリケーションの稼働状態を返す。"""
    return {"status": "ok"}


@router.get("/health/ready")
def ready() -> dict[str, Any]:
    """印刷ブリッジの準備完了シグナルを返す。

    Note:
        - 印刷ブリッジ未準備でも API 自体は利用可能なため、常に 200 を返す。
    """
    handle = get_print_bridge_loader().handle
    return {
        "status": "ok",
        "print_bridge": {
            "state": handle.state.value,
            "loaded": handle.loaded,
            "error": handle.error,
        },
    }
