"""環境変数からアプリケーション設定を組み立てるモジュール。

設定項目
- LOOKUP_API_URL         : Lookup API のベース URL（既定: http://localhost:8000/api）
- LOOKUP_API_TOKEN       : Lookup API の Bearer トークン（任意）
- LOOKUP_API_TIMEOUT_SEC : Lookup API の HTTP タイムアウト秒（既定: 10）
- RELAY_ALLOWED_HOSTS    : 画像リレーの許可ホスト（カンマ区切り。空なら制限なし）
- BARCODE_SCRIPT_URL     : バーコードライブラリのスクリプト URL
- PRINT_CLIENT_SCRIPT_URL: 印刷クライアントのスクリプト URL
- LOG_LEVEL / LOG_FORMAT : ログ出力設定（LOG_FORMAT は text / json）

Note:
    - 設定は get_settings() 呼び出しごとに環境変数から読み直す。
      テストで monkeypatch.setenv した値がそのまま反映される。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_LOOKUP_API_URL = "http://localhost:8000/api"
DEFAULT_BARCODE_SCRIPT_URL = (
    "https://cdn.jsdelivr.net/npm/jsbarcode@3.11.5/dist/JsBarcode.all.min.js"
)
DEFAULT_PRINT_CLIENT_SCRIPT_URL = "https://cdn.jsdelivr.net/npm/qz-tray@2.2.4/qz-tray.js"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    """環境変数を取得する。

    Note:
        - 未設定または空文字の場合は default を返す。
    """
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_list(name: str) -> tuple[str, ...]:
    """カンマ区切りの環境変数を小文字化したタプルとして返す。"""
    raw = _env(name, "") or ""
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """アプリケーション全体の設定値。"""

    # Lookup API（外部バックエンド）の接続先。
    lookup_api_url: str = DEFAULT_LOOKUP_API_URL
    # 管理画面用トークン。未指定なら Authorization ヘッダーを付けない。
    lookup_api_token: Optional[str] = None
    # Lookup API の HTTP タイムアウト秒。
    lookup_api_timeout_sec: float = 10.0

    # 画像リレーの許可ホスト。空タプルは「制限なし」を表す。
    relay_allowed_hosts: tuple[str, ...] = field(default_factory=tuple)

    # 印刷ブリッジが読み込む2本のスクリプト。
    barcode_script_url: str = DEFAULT_BARCODE_SCRIPT_URL
    print_client_script_url: str = DEFAULT_PRINT_CLIENT_SCRIPT_URL

    # ログ出力。
    log_level: str = "INFO"
    log_format: str = "text"


def get_settings() -> Settings:
    """環境変数から Settings を組み立てる。"""
    return Settings(
        lookup_api_url=_env("LOOKUP_API_URL", DEFAULT_LOOKUP_API_URL),  # type: ignore[arg-type]
        lookup_api_token=_env("LOOKUP_API_TOKEN"),
        lookup_api_timeout_sec=float(_env("LOOKUP_API_TIMEOUT_SEC", "10")),  # type: ignore[arg-type]
        relay_allowed_hosts=_env_list("RELAY_ALLOWED_HOSTS"),
        barcode_script_url=_env(  # type: ignore[arg-type]
            "BARCODE_SCRIPT_URL", DEFAULT_BARCODE_SCRIPT_URL
        ),
        print_client_script_url=_env(  # type: ignore[arg-type]
            "PRINT_CLIENT_SCRIPT_URL", DEFAULT_PRINT_CLIENT_SCRIPT_URL
        ),
        log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
        log_format=(_env("LOG_FORMAT", "text") or "text").lower(),
    )
