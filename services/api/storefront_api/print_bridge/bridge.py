"""印刷ブリッジ（ローカル印刷サービス）の依存インターフェースと利用側サービス。

ブラウザに常駐する印刷クライアント（QZ Tray）はグローバル名前空間に
ハンドルを生やすが、ここではそれを PrintBridge として明示的に注入する。

対応内容
- PrintBridge（Protocol）: 接続管理・プリンタ列挙・印刷・署名コールバック
- DisabledPrintBridge: 印刷サービスを使わない構成の既定実装
- PrintService: 準備完了シグナルを確認してから印刷操作を行う利用側

Note:
    - 印刷操作の前には必ず PrintBridgeHandle.loaded を確認する。
      未準備なら PrintBridgeNotReadyError を送出し、画面側で無効表示にする。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

from storefront_api.logging_config import get_logger
from storefront_api.models.storage_bridge import StorageBridge
from storefront_api.print_bridge.loader import PrintBridgeHandle

logger = get_logger(__name__)

# 優先プリンタを保存するストレージキー。
PREFERRED_PRINTER_KEY = "print_bridge.preferred_printer"

CertificateProvider = Callable[[], Awaitable[str]]
SignatureProvider = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class PrintJobConfig:
    """印刷ジョブ設定（qz.configs.create 相当）。"""

    # 出力先プリンタ名。None の場合は既定プリンタ。
    printer: Optional[str] = None
    # 用紙サイズ・部数などのプリンタ依存オプション。
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PrintBridgeStatus:
    """印刷ブリッジの状態。"""

    connected: bool
    version: Optional[str] = None
    error: Optional[str] = None


class PrintBridgeNotReadyError(RuntimeError):
    """印刷クライアントの読み込みが完了していないことを表す例外。"""


class PrintBridgeUnavailableError(RuntimeError):
    """印刷サービスに接続できない、または印刷を受け付けないことを表す例外。"""


class PrintBridge(Protocol):
    """ローカル印刷サービスの差し替えインターフェース。"""

    version: Optional[str]

    async def connect(self, host: Optional[str] = None, port: Optional[int] = None) -> bool:
        """印刷サービスへ接続する。接続できた場合は True。"""
        ...

    async def disconnect(self) -> None:
        """接続を切断する。"""
        ...

    def is_active(self) -> bool:
        """接続中かどうかを返す。"""
        ...

    async def find_printers(self) -> list[str]:
        """利用可能なプリンタ名の一覧を返す。"""
        ...

    async def get_default_printer(self) -> Optional[str]:
        """既定プリンタ名を返す。"""
        ...

    async def print(self, config: PrintJobConfig, data: Sequence[Any]) -> None:
        """印刷ジョブを送信する。"""
        ...

    def set_certificate_provider(self, provider: CertificateProvider) -> None:
        """署名付き印刷用の証明書取得コールバックを登録する。"""
        ...

    def set_signature_provider(self, provider: SignatureProvider) -> None:
        """署名付き印刷用の署名コールバックを登録する。"""
        ...


class DisabledPrintBridge:
    """印刷サービスを使わない構成の PrintBridge 実装。

    Note:
        - 接続は常に失敗し、プリンタは0件として振る舞う。
        - 印刷はブラウザの印刷ダイアログ（PDF 保存）側で行う前提。
    """

    version: Optional[str] = None

    def __init__(self) -> None:
        self._certificate_provider: Optional[CertificateProvider] = None
        self._signature_provider: Optional[SignatureProvider] = None

    async def connect(self, host: Optional[str] = None, port: Optional[int] = None) -> bool:
        return False

    async def disconnect(self) -> None:
        return None

    def is_active(self) -> bool:
        return False

    async def find_printers(self) -> list[str]:
        return []

    async def get_default_printer(self) -> Optional[str]:
        return None

    async def print(self, config: PrintJobConfig, data: Sequence[Any]) -> None:
        raise PrintBridgeUnavailableError("print service is disabled")

    def set_certificate_provider(self, provider: CertificateProvider) -> None:
        self._certificate_provider = provider

    def set_signature_provider(self, provider: SignatureProvider) -> None:
        self._signature_provider = provider


class PrintService:
    """印刷ブリッジを利用する側のサービス。

    主要変数:
        bridge: 注入された PrintBridge 実装。
        handle: 読み込み状態（準備完了シグナル）。
        storage: 優先プリンタの保存先。
    """

    def __init__(
        self,
        bridge: PrintBridge,
        handle: PrintBridgeHandle,
        storage: StorageBridge,
    ) -> None:
        self.bridge = bridge
        self.handle = handle
        self.storage = storage

    def is_ready(self) -> bool:
        """印刷操作を発行してよい状態かを返す。"""
        return self.handle.loaded and not self.handle.error

    def _require_ready(self) -> None:
        if not self.is_ready():
            raise PrintBridgeNotReadyError(
                f"print client is not loaded (state={self.handle.state.value})"
            )

    async def ensure_connected(self) -> bool:
        """未接続なら接続を試みる。"""
        self._require_ready()
        if self.bridge.is_active():
            return True
        connected = await self.bridge.connect()
        if not connected:
            logger.info("Print service connection unavailable")
        return connected

    async def status(self) -> PrintBridgeStatus:
        """印刷ブリッジの状態を返す。

        Note:
            - 未準備・接続失敗のいずれも例外にはせず、error に理由を入れて返す。
        """
        if not self.is_ready():
            return PrintBridgeStatus(
                connected=False,
                error=f"print client not loaded (state={self.handle.state.value})",
            )
        connected = await self.ensure_connected()
        if not connected:
            return PrintBridgeStatus(connected=False, error="print service not connected")
        return PrintBridgeStatus(connected=True, version=self.bridge.version)

    async def list_printers(self) -> list[str]:
        """利用可能なプリンタ名の一覧を返す。"""
        if not await self.ensure_connected():
            return []
        return await self.bridge.find_printers()

    async def get_preferred_printer(self) -> Optional[str]:
        """保存済みの優先プリンタを返す。未保存なら既定プリンタ。"""
        saved = await self.storage.get(PREFERRED_PRINTER_KEY)
        if saved:
            return saved
        if not self.is_ready() or not await self.ensure_connected():
            return None
        return await self.bridge.get_default_printer()

    async def save_preferred_printer(self, printer_name: str) -> None:
        """優先プリンタを保存する。"""
        await self.storage.set(PREFERRED_PRINTER_KEY, printer_name)

    async def print_job(
        self,
        data: Sequence[Any],
        printer: Optional[str] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> None:
        """印刷ジョブを送信する。

        Note:
            - printer 未指定時は優先プリンタ → 既定プリンタの順で解決する。
            - 接続できない場合は PrintBridgeUnavailableError を送出する。
        """
        self._require_ready()
        if not await self.ensure_connected():
            raise PrintBridgeUnavailableError("print service not connected")
        target = printer or await self.get_preferred_printer()
        config = PrintJobConfig(printer=target, options=dict(options or {}))
        await self.bridge.print(config, list(data))


_PRINT_BRIDGE: Optional[PrintBridge] = None


def get_print_bridge() -> PrintBridge:
    """PrintBridge のシングルトンを返す。未設定なら DisabledPrintBridge。"""
    global _PRINT_BRIDGE
    if _PRINT_BRIDGE is None:
        _PRINT_BRIDGE = DisabledPrintBridge()
    return _PRINT_BRIDGE
