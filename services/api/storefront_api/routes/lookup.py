"""注文照会 API ルート。

提供エンドポイント
- GET  /lookup/orders/{order_id}
- GET  /lookup/pathao/{order_number}
- POST /lookup/pathao/bulk

設計方針
- 外部 Lookup API への通信は adapters/lookup_api.py の内側に閉じ込める
- LookupApiError / httpx.HTTPError は HTTP 502、その他の例外は HTTP 500 に集約する
- 注文データ本体（data）は加工せずに返す
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from storefront_api.adapters.lookup_api import (
    LookupApiClient,
    LookupApiError,
    LookupEnvelope,
    PathaoBulkLookupResult,
    PathaoLookupData,
    build_lookup_client,
)
from storefront_api.config import get_settings
from storefront_api.logging_config import get_logger

router = APIRouter(prefix="/lookup", tags=["lookup"])

logger = get_logger(__name__)


class PathaoBulkIn(BaseModel):
    """/lookup/pathao/bulk の入力モデル。"""

    # 照会する注文番号。空白のみの要素はアダプタ側で除外される。
    order_numbers: list[str] = Field(..., min_length=1)


class OrderLookupOut(BaseModel):
    """/lookup/orders/{order_id} のレスポンス。

    Note:
        - 外部 API が返した未知のキーも落とさずに返す。
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    message: Optional[str] = None
    # 外部サービス所有の注文データ（未検証）。
    data: Any = None
    errors: Any = None


def build_lookup_client_from_env() -> LookupApiClient:
    """環境変数から LookupApiClient を組み立てる。"""
    settings = get_settings()
    return build_lookup_client(
        base_url=settings.lookup_api_url,
        token=settings.lookup_api_token,
        timeout_sec=settings.lookup_api_timeout_sec,
    )


def _upstream_error(exc: Exception) -> HTTPException:
    """外部 API 起因の例外を 502 に変換する。"""
    logger.warning("Lookup API failure: %s", exc)
    return HTTPException(status_code=502, detail=f"Lookup API エラー: {exc}")


@router.get("/orders/{order_id}", response_model=OrderLookupOut)
def lookup_order(order_id: int) -> OrderLookupOut:
    """注文を1件照会する。

    エラー:
        - LookupApiError / httpx.HTTPError: HTTP 502
        - その他の例外: HTTP 500
    """
    try:
        with build_lookup_client_from_env() as client:
            envelope: LookupEnvelope = client.get_order(order_id)
    except (LookupApiError, httpx.HTTPError) as exc:
        raise _upstream_error(exc) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error during order lookup")
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return OrderLookupOut.model_validate(envelope.model_dump())


@router.get("/pathao/{order_number}", response_model=PathaoLookupData)
def lookup_pathao(order_number: str) -> PathaoLookupData:
    """注文番号で Pathao 送付状況を照会する。"""
    try:
        with build_lookup_client_from_env() as client:
            return client.lookup_pathao_single(order_number)
    except (LookupApiError, httpx.HTTPError) as exc:
        raise _upstream_error(exc) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error during Pathao lookup")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post("/pathao/bulk", response_model=PathaoBulkLookupResult)
def lookup_pathao_bulk(body: PathaoBulkIn) -> PathaoBulkLookupResult:
    """複数の注文番号をまとめて照会する。"""
    try:
        with build_lookup_client_from_env() as client:
            return client.lookup_pathao_bulk(body.order_numbers)
    except (LookupApiError, httpx.HTTPError) as exc:
        raise _upstream_error(exc) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error during Pathao bulk lookup")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
