"""API テスト共通フィクスチャ。

本ファイルは `/test` 配下の pytest 実行に必要な共通準備を行う。
- `services/api` を import path に追加
- TestClient の生成
- 印刷ブリッジ・ストレージのシングルトンをテスト用に差し替え

Note:
    - 各シングルトンはグローバル状態のため、各テストで初期化し直す。
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# リポジトリルートと API ルートを解決する。
REPO_ROOT = Path(__file__).resolve().parents[1]
API_ROOT = REPO_ROOT / "services" / "api"

if str(API_ROOT) not in sys.path:
    sys.path.insert(0, str(API_ROOT))

from storefront_api.config import Settings  # noqa: E402
from storefront_api.main import app  # noqa: E402
from storefront_api.models import storage_bridge as storage_module  # noqa: E402
from storefront_api.print_bridge import bridge as bridge_module  # noqa: E402
from storefront_api.print_bridge import loader as loader_module  # noqa: E402
from storefront_api.print_bridge.loader import ScriptSpec, build_loader  # noqa: E402


class RecordingScriptLoader:
    """読み込み要求を記録するテスト用 ScriptLoader。

    主要変数:
        calls: 読み込んだスクリプト名（順序どおり）。
    """

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def load(self, script: ScriptSpec) -> None:
        self.calls.append(script.name)


@pytest.fixture
def script_loader() -> RecordingScriptLoader:
    """正常に読み込めるテスト用 ScriptLoader を返す。"""
    return RecordingScriptLoader()


@pytest.fixture
def client(script_loader: RecordingScriptLoader) -> TestClient:
    """テスト用 TestClient を返す。

    主要変数:
        script_loader: ローダに注入するテスト用 ScriptLoader。
    """
    loader_module._LOADER = build_loader(Settings(), script_loader=script_loader)
    bridge_module._PRINT_BRIDGE = bridge_module.DisabledPrintBridge()
    storage_module._STORAGE_BRIDGE = storage_module.InMemoryStorageBridge()

    with TestClient(app) as test_client:
        yield test_client

    loader_module._LOADER = None
    bridge_module._PRINT_BRIDGE = None
    storage_module._STORAGE_BRIDGE = None
