"""外部 Lookup API を呼ぶ薄いラッパ。

このモジュールは routes 層から import される「外部バックエンドへの境界」です。

対応内容
- 注文照会
  - GET /lookup/order/{order_id}
- Pathao（配送業者）照会
  - GET  /pathao/orders/lookup/{order_number}
  - POST /pathao/orders/lookup/bulk

方針
- 1回の呼び出しにつき HTTP リクエストは1回。リトライ・キャッシュはしない。
- 通信エラー（httpx.HTTPError）は変換せずにそのまま呼び出し元へ伝播させる。
- レスポンスは最小限のエンベロープ（success / message / data / errors）だけを検証し、
  data の中身は外部サービス所有のスキーマとして未検証のまま扱う。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError


# ============================================================
# レスポンスモデル
# ============================================================


class LookupEnvelope(BaseModel):
    """Lookup API 共通のレスポンスエンベロープ。

    Note:
        - data は外部サービスが形を決める不透明なペイロード。検証しない。
        - 未知のキーも保持し、パース後も元の本文と同じ内容を返せるようにする。
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    message: Optional[str] = None
    # 注文データ本体（未検証）。
    data: Any = None
    errors: Any = None


class PathaoLookupData(BaseModel):
    """Pathao 照会1件分のデータ。"""

    model_config = ConfigDict(extra="allow")

    order_number: str
    order_id: Optional[int] = None
    is_sent_via_pathao: bool = False
    pathao_consignment_id: Optional[str] = None
    pathao_status: Optional[str] = None
    shipment_status: Optional[str] = None


class PathaoBulkLookupItem(PathaoLookupData):
    """一括照会の1行。見つからなかった注文は found=False と error を持つ。"""

    found: bool = False
    error: Optional[str] = None


class PathaoBulkLookupResult(BaseModel):
    """一括照会の結果全体。"""

    model_config = ConfigDict(extra="allow")

    success: bool
    total_requested: int = 0
    total_found: int = 0
    data: list[PathaoBulkLookupItem] = []
    message: Optional[str] = None


# ============================================================
# クライアント
# ============================================================


@dataclass(frozen=True)
class LookupApiConfig:
    """Lookup API 接続設定。"""

    # ベース URL（例: http://localhost:8000/api）。
    base_url: str
    # Bearer トークン。None なら Authorization ヘッダーを付けない。
    token: Optional[str] = None
    # HTTP タイムアウト秒。
    timeout_sec: float = 10.0


class LookupApiError(RuntimeError):
    """Lookup API が想定外の本文、または success=false を返したことを表す例外。"""


class LookupApiClient:
    """Lookup API を叩く薄いラッパ。

    Note:
        - keep-alive を再利用するため httpx.Client を1つ保持する。
        - 通信エラーは握りつぶさずにそのまま送出する。
    """

    def __init__(self, cfg: LookupApiConfig) -> None:
        self.cfg = cfg
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if cfg.token:
            headers["Authorization"] = f"Bearer {cfg.token}"
        self._client = httpx.Client(
            base_url=cfg.base_url,
            timeout=cfg.timeout_sec,
            headers=headers,
        )

    def close(self) -> None:
        """保持している HTTP コネクションをクローズする。"""
        self._client.close()

    def __enter__(self) -> "LookupApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get_order(self, order_id: int) -> LookupEnvelope:
        """注文を1件照会し、エンベロープとして返す。

        Note:
            - GET /lookup/order/{order_id} を1回だけ送る。
            - HTTP エラーは raise_for_status で httpx.HTTPStatusError として送出する。
        """
        res = self._client.get(f"/lookup/order/{order_id}")
        res.raise_for_status()
        return _parse_envelope(res.json())

    def lookup_pathao_single(self, order_number: str) -> PathaoLookupData:
        """注文番号で Pathao 送付状況を照会する。

        Note:
            - 注文番号は前後空白を除去し、URL エンコードしてパスに埋め込む。
            - success=false の場合は LookupApiError を送出する。
        """
        safe = quote(str(order_number or "").strip(), safe="")
        res = self._client.get(f"/pathao/orders/lookup/{safe}")
        res.raise_for_status()
        envelope = _parse_envelope(res.json())
        if not envelope.success:
            raise LookupApiError(envelope.message or "Failed to lookup Pathao order")
        try:
            return PathaoLookupData.model_validate(envelope.data)
        except ValidationError as exc:
            raise LookupApiError(f"Pathao 照会の data が不正です: {exc}") from exc

    def lookup_pathao_bulk(self, order_numbers: list[str]) -> PathaoBulkLookupResult:
        """複数の注文番号をまとめて照会する。

        Note:
            - 空白のみの注文番号は送信前に除外する。
        """
        payload = {
            "order_numbers": [
                str(number).strip() for number in order_numbers or [] if str(number).strip()
            ]
        }
        res = self._client.post("/pathao/orders/lookup/bulk", json=payload)
        res.raise_for_status()
        body = res.json()
        if not isinstance(body, dict) or not body.get("success"):
            message = body.get("message") if isinstance(body, dict) else None
            raise LookupApiError(message or "Failed to bulk lookup Pathao orders")
        try:
            return PathaoBulkLookupResult.model_validate(body)
        except ValidationError as exc:
            raise LookupApiError(f"Pathao 一括照会の本文が不正です: {exc}") from exc


def _parse_envelope(body: Any) -> LookupEnvelope:
    """レスポンス本文を LookupEnvelope へ変換する。

    Note:
        - エンベロープとして解釈できない本文は LookupApiError に変換する。
    """
    try:
        return LookupEnvelope.model_validate(body)
    except ValidationError as exc:
        raise LookupApiError(f"Lookup API の応答形式が不正です: {exc}") from exc


def build_lookup_client(
    *,
    base_url: str,
    token: Optional[str] = None,
    timeout_sec: float = 10.0,
) -> LookupApiClient:
    """設定値から LookupApiClient を生成する補助関数。"""
    cfg = LookupApiConfig(base_url=base_url, token=token, timeout_sec=timeout_sec)
    return LookupApiClient(cfg)
