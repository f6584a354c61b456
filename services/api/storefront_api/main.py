"""Storefront Edge API アプリケーション エントリポイント。

uvicorn から `storefront_api.main:app` として参照される。

登録ルーター
- /health            : 稼働確認
- /api/proxy-image   : 画像リレー（同一オリジン化）
- /lookup            : 外部 Lookup API の注文照会
- /print-bridge      : 印刷ブリッジ用スクリプトの読み込み管理
"""

from __future__ import annotations

from fastapi import FastAPI

from storefront_api.config import get_settings
from storefront_api.logging_config import get_logger, setup_logging
from storefront_api.routes.health import router as health_router
from storefront_api.routes.lookup import router as lookup_router
from storefront_api.routes.media import router as media_router
from storefront_api.routes.print_bridge import router as print_bridge_router

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """FastAPI アプリケーションを生成する。

    Note:
        - ログ設定はここで1回だけ行う。
    """
    settings = get_settings()
    setup_logging(level=settings.log_level, fmt=settings.log_format)

    application = FastAPI(
        title="Storefront Edge API",
        description="画像リレー・印刷ブリッジ・注文照会を担う店舗向け境界 API。",
        version="0.1.0",
    )

    # ルーターを登録する。
    application.include_router(health_router)
    application.include_router(media_router)
    application.include_router(lookup_router)
    application.include_router(print_bridge_router)

    if settings.relay_allowed_hosts:
        logger.info("Image relay restricted to hosts: %s", ", ".join(settings.relay_allowed_hosts))
    else:
        logger.warning("Image relay has no host allow-list; any URL will be fetched")

    return application


# FastAPI アプリケーションインスタンス。
app = create_app()
