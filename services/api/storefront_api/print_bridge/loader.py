"""印刷ブリッジ用スクリプトの読み込み順序を管理するローダ。

読み込むスクリプト
- バーコードライブラリ（JsBarcode）: 対話可能になる前に読み込む
- 印刷クライアント（QZ Tray）     : 対話可能になった後に読み込む

順序制約
- 印刷ジョブは生成したバーコードを埋め込むことがあるため、
  バーコードライブラリの読み込み完了を待ってから印刷クライアントの読み込みを開始する。
- 印刷クライアント自体はこの依存を宣言しないため、ローダ側で構造的に保証する。

状態遷移
    IDLE → BARCODE_LOADING → BARCODE_READY → PRINT_CLIENT_LOADING → PRINT_CLIENT_READY
    （どちらの LOADING からも ERRORED へ遷移しうる）

Note:
    - 読み込み失敗はログに残し、handle.error を立てるだけで例外は送出しない。
    - リトライはしない。印刷に依存する画面側が handle.loaded を確認する。
"""

from __future__ import annotations

import asyncio
import html
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

import httpx

from storefront_api.config import Settings, get_settings
from storefront_api.logging_config import get_logger

logger = get_logger(__name__)

STRATEGY_BEFORE_INTERACTIVE = "beforeInteractive"
STRATEGY_AFTER_INTERACTIVE = "afterInteractive"


class LoaderState(str, Enum):
    """ローダの状態。"""

    IDLE = "idle"
    BARCODE_LOADING = "barcode_loading"
    BARCODE_READY = "barcode_ready"
    PRINT_CLIENT_LOADING = "print_client_loading"
    PRINT_CLIENT_READY = "print_client_ready"
    ERRORED = "errored"


# 許可する遷移。これ以外の遷移はプログラムの誤りとして扱う。
_TRANSITIONS: dict[LoaderState, frozenset[LoaderState]] = {
    LoaderState.IDLE: frozenset({LoaderState.BARCODE_LOADING}),
    LoaderState.BARCODE_LOADING: frozenset({LoaderState.BARCODE_READY, LoaderState.ERRORED}),
    LoaderState.BARCODE_READY: frozenset({LoaderState.PRINT_CLIENT_LOADING}),
    LoaderState.PRINT_CLIENT_LOADING: frozenset(
        {LoaderState.PRINT_CLIENT_READY, LoaderState.ERRORED}
    ),
    LoaderState.PRINT_CLIENT_READY: frozenset(),
    LoaderState.ERRORED: frozenset(),
}


@dataclass(frozen=True)
class ScriptSpec:
    """読み込むスクリプト1本の宣言。"""

    # 識別名（ログ・マニフェスト用）。
    name: str
    # スクリプト URL。
    src: str
    # 読み込みタイミング（beforeInteractive / afterInteractive）。
    strategy: str


@dataclass
class PrintBridgeHandle:
    """読み込み済み印刷クライアントへの参照状態。

    主要変数:
        state: 現在の状態。
        loaded: 両スクリプトの読み込みが完了したら True（準備完了シグナル）。
        error: いずれかの読み込みに失敗したら True。
        history: 経由した状態の履歴。
        error_message: 失敗理由（任意）。
    """

    state: LoaderState = LoaderState.IDLE
    loaded: bool = False
    error: bool = False
    history: list[LoaderState] = field(default_factory=lambda: [LoaderState.IDLE])
    error_message: Optional[str] = None

    def transition(self, new_state: LoaderState) -> None:
        """状態を遷移させる。許可されていない遷移は ValueError。"""
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(f"invalid transition: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
        if new_state is LoaderState.PRINT_CLIENT_READY:
            self.loaded = True
        elif new_state is LoaderState.ERRORED:
            self.error = True


class ScriptLoader(Protocol):
    """スクリプト1本を読み込む処理の差し替えインターフェース。"""

    async def load(self, script: ScriptSpec) -> None:
        """スクリプトを読み込む。失敗時は例外を送出する。"""
        ...


class HttpScriptLoader:
    """HTTP でスクリプトを取得して到達性を確認する ScriptLoader 実装。"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self._client = client

    async def load(self, script: ScriptSpec) -> None:
        if self._client is not None:
            await self._fetch(self._client, script)
            return
        async with httpx.AsyncClient(follow_redirects=True) as client:
            await self._fetch(client, script)

    async def _fetch(self, client: httpx.AsyncClient, script: ScriptSpec) -> None:
        res = await client.get(script.src)
        res.raise_for_status()
        if not res.content:
            raise RuntimeError(f"empty script body: {script.src}")


def build_scripts(settings: Settings) -> tuple[ScriptSpec, ScriptSpec]:
    """設定値から (バーコードライブラリ, 印刷クライアント) の宣言を組み立てる。"""
    barcode = ScriptSpec(
        name="jsbarcode",
        src=settings.barcode_script_url,
        strategy=STRATEGY_BEFORE_INTERACTIVE,
    )
    print_client = ScriptSpec(
        name="qz-tray",
        src=settings.print_client_script_url,
        strategy=STRATEGY_AFTER_INTERACTIVE,
    )
    return barcode, print_client


class PrintBridgeLoader:
    """2段階の非同期読み込みで印刷ブリッジを準備するローダ。

    Note:
        - 1段目（バーコード）の完了を await してから2段目（印刷クライアント）を開始する。
        - mount() は同じ handle を返し、再描画で作り直さない。
        - load() を並行に呼んでも読み込みは1回だけ行う。
    """

    def __init__(
        self,
        barcode_script: ScriptSpec,
        print_client_script: ScriptSpec,
        script_loader: ScriptLoader,
    ) -> None:
        self.barcode_script = barcode_script
        self.print_client_script = print_client_script
        self._script_loader = script_loader
        self._handle: Optional[PrintBridgeHandle] = None
        self._load_task: Optional[asyncio.Task[PrintBridgeHandle]] = None

    def load_directives(self) -> list[ScriptSpec]:
        """読み込み指示を順序どおりに返す（常にバーコードが先）。"""
        return [self.barcode_script, self.print_client_script]

    def mount(self) -> PrintBridgeHandle:
        """handle を返す。初回のみ生成する。"""
        if self._handle is None:
            self._handle = PrintBridgeHandle()
        return self._handle

    @property
    def handle(self) -> PrintBridgeHandle:
        return self.mount()

    async def load(self) -> PrintBridgeHandle:
        """両スクリプトを順に読み込み、handle を返す。

        Note:
            - 既に読み込み済み（または失敗済み）の場合は何もせずに返す。
        """
        handle = self.mount()
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._run(handle))
        elif self._load_task.done():
            return handle
        return await asyncio.shield(self._load_task)

    async def _run(self, handle: PrintBridgeHandle) -> PrintBridgeHandle:
        # 1段目: バーコードライブラリ。
        if not await self._load_stage(
            handle,
            self.barcode_script,
            LoaderState.BARCODE_LOADING,
            LoaderState.BARCODE_READY,
        ):
            return handle

        # 2段目: 1段目の完了後にのみ開始する。
        if await self._load_stage(
            handle,
            self.print_client_script,
            LoaderState.PRINT_CLIENT_LOADING,
            LoaderState.PRINT_CLIENT_READY,
        ):
            logger.info(
                "Print bridge ready (%s -> %s)",
                self.barcode_script.name,
                self.print_client_script.name,
            )
        return handle

    async def _load_stage(
        self,
        handle: PrintBridgeHandle,
        script: ScriptSpec,
        loading: LoaderState,
        ready: LoaderState,
    ) -> bool:
        """1段分を読み込む。成功したら True。"""
        handle.transition(loading)
        try:
            await self._script_loader.load(script)
        except Exception as exc:  # noqa: BLE001
            # 読み込み失敗は状態に反映するだけで、呼び出し元へは送出しない。
            logger.error("Failed to load %s script from %s: %s", script.name, script.src, exc)
            handle.error_message = f"{script.name}: {exc}"
            handle.transition(LoaderState.ERRORED)
            return False
        handle.transition(ready)
        logger.info("%s script loaded", script.name)
        return True


def render_loader_html(barcode_script: ScriptSpec, print_client_script: ScriptSpec) -> str:
    """ブラウザ用の読み込みスニペットを生成する。

    Note:
        - バーコードの script タグの onload で印刷クライアントのタグを挿入する。
          ブラウザ上でもバーコードの読み込み完了が印刷クライアント開始の前提になる。
        - 結果は window.__printBridge = {loaded, error} に書き込む。
    """
    client_src = json.dumps(print_client_script.src)
    on_load = (
        "(function(){"
        "var s=document.createElement('script');"
        f"s.src={client_src};"
        "s.onload=function(){window.__printBridge={loaded:!!window.qz,error:!window.qz};};"
        "s.onerror=function(e){console.error('Failed to load print client script',e);"
        "window.__printBridge={loaded:false,error:true};};"
        "document.head.appendChild(s);"
        "})()"
    )
    on_error = (
        "console.error('Failed to load barcode script');"
        "window.__printBridge={loaded:false,error:true};"
    )
    return (
        f'<script src="{html.escape(barcode_script.src)}" '
        f'data-strategy="{html.escape(barcode_script.strategy)}" '
        f'data-next="{html.escape(print_client_script.name)}" '
        f'onload="{html.escape(on_load)}" '
        f'onerror="{html.escape(on_error)}"></script>\n'
    )


def build_loader(
    settings: Settings,
    script_loader: Optional[ScriptLoader] = None,
) -> PrintBridgeLoader:
    """設定値から PrintBridgeLoader を生成する補助関数。"""
    barcode, print_client = build_scripts(settings)
    return PrintBridgeLoader(
        barcode_script=barcode,
        print_client_script=print_client,
        script_loader=script_loader or HttpScriptLoader(),
    )


_LOADER: Optional[PrintBridgeLoader] = None


def get_print_bridge_loader() -> PrintBridgeLoader:
    """ローダのシングルトンを返す。"""
    global _LOADER
    if _LOADER is None:
        _LOADER = build_loader(get_settings())
    return _LOADER
