"""印刷ブリッジ API ルート。

提供エンドポイント
- GET  /print-bridge/manifest           : スクリプト読み込み指示（順序付き）
- GET  /print-bridge/loader.html        : ブラウザ用読み込みスニペット
- POST /print-bridge/mount              : ローダを起動し、読み込み状態を返す
- GET  /print-bridge/status             : 準備完了シグナルと接続状態
- GET  /print-bridge/printers           : プリンタ一覧（未準備なら 503）
- PUT  /print-bridge/preferred-printer  : 優先プリンタの保存

設計方針
- 印刷クライアント・ストレージはグローバル参照せず、取得関数経由で注入する
- 読み込み失敗は 200 + error=True で返す（画面側が無効表示を選ぶ）
- 未準備のまま印刷系操作を要求された場合のみ 503 を返す
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from storefront_api.models.storage_bridge import get_storage_bridge
from storefront_api.print_bridge.bridge import (
    PrintBridgeNotReadyError,
    PrintService,
    get_print_bridge,
)
from storefront_api.print_bridge.loader import (
    PrintBridgeHandle,
    get_print_bridge_loader,
    render_loader_html,
)

router = APIRouter(prefix="/print-bridge", tags=["print-bridge"])


class ScriptDirectiveOut(BaseModel):
    """スクリプト読み込み指示1件。"""

    # 読み込み順（0 始まり）。
    order: int
    name: str
    src: str
    strategy: str


class HandleOut(BaseModel):
    """読み込み状態のレスポンス。"""

    state: str
    loaded: bool
    error: bool
    history: list[str]
    error_message: Optional[str] = None


class StatusOut(BaseModel):
    """/print-bridge/status のレスポンス。"""

    handle: HandleOut
    connected: bool
    version: Optional[str] = None
    error: Optional[str] = None


class PrintersOut(BaseModel):
    """/print-bridge/printers のレスポンス。"""

    printers: list[str]
    preferred: Optional[str] = None


class PreferredPrinterIn(BaseModel):
    """優先プリンタ保存の入力モデル。"""

    printer: str = Field(..., min_length=1)


def _handle_out(handle: PrintBridgeHandle) -> HandleOut:
    return HandleOut(
        state=handle.state.value,
        loaded=handle.loaded,
        error=handle.error,
        history=[state.value for state in handle.history],
        error_message=handle.error_message,
    )


def build_print_service() -> PrintService:
    """注入済み依存から PrintService を組み立てる。"""
    return PrintService(
        bridge=get_print_bridge(),
        handle=get_print_bridge_loader().handle,
        storage=get_storage_bridge(),
    )


@router.get("/manifest", response_model=list[ScriptDirectiveOut])
def manifest() -> list[ScriptDirectiveOut]:
    """読み込み指示を返す。バーコードライブラリが常に先頭。"""
    loader = get_print_bridge_loader()
    return [
        ScriptDirectiveOut(order=index, name=spec.name, src=spec.src, strategy=spec.strategy)
        for index, spec in enumerate(loader.load_directives())
    ]


@router.get("/loader.html", response_class=HTMLResponse)
def loader_html() -> HTMLResponse:
    """ページに埋め込む読み込みスニペットを返す。"""
    loader = get_print_bridge_loader()
    return HTMLResponse(render_loader_html(loader.barcode_script, loader.print_client_script))


@router.post("/mount", response_model=HandleOut)
async def mount() -> HandleOut:
    """ローダを起動し、読み込み完了（または失敗）後の状態を返す。

    Note:
        - 2回目以降は同じ handle をそのまま返す（再読み込みしない）。
    """
    handle = await get_print_bridge_loader().load()
    return _handle_out(handle)


@router.get("/status", response_model=StatusOut)
async def status() -> StatusOut:
    """準備完了シグナルと印刷サービスの接続状態を返す。"""
    service = build_print_service()
    bridge_status = await service.status()
    return StatusOut(
        handle=_handle_out(service.handle),
        connected=bridge_status.connected,
        version=bridge_status.version,
        error=bridge_status.error,
    )


@router.get("/printers", response_model=PrintersOut)
async def printers() -> PrintersOut:
    """利用可能なプリンタ一覧を返す。

    エラー:
        - 印刷クライアント未準備: HTTP 503
    """
    service = build_print_service()
    try:
        names = await service.list_printers()
        preferred = await service.get_preferred_printer()
    except PrintBridgeNotReadyError as exc:
        raise HTTPException(status_code=503, detail=f"印刷ブリッジが未準備です: {exc}") from exc
    return PrintersOut(printers=names, preferred=preferred)


@router.put("/preferred-printer", response_model=PrintersOut)
async def save_preferred_printer(body: PreferredPrinterIn) -> PrintersOut:
    """優先プリンタを保存する。

    Note:
        - 保存自体は印刷クライアントの準備状態に依存しない。
    """
    service = build_print_service()
    await service.save_preferred_printer(body.printer)
    return PrintersOut(printers=[], preferred=body.printer)
