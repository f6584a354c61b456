"""ログ設定モジュール。

アプリ生成時に setup_logging() を1回だけ呼び、各モジュールは
get_logger(__name__) でロガーを取得する。

出力形式
- text: 2026-10-18 10:15:30 [INFO    ] storefront_api.routes.media - ...
- json: {"level": "INFO", "message": "...", "logger": "...", "time": "..."}
"""

from __future__ import annotations

import json
import logging
import sys

ROOT_LOGGER_NAME = "storefront_api"

TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """1レコード1行の JSON でログを出力するフォーマッタ。"""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "time": self.formatTime(record, DATE_FORMAT),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "text") -> logging.Logger:
    """storefront_api 配下のロガーを設定して返す。

    Note:
        - ルートロガーではなくパッケージロガーにハンドラを付ける。
          uvicorn 側のログ設定とは干渉しない。
        - 再呼び出し時は既存ハンドラを入れ替える（多重出力を防ぐ）。
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger


def get_logger(name: str) -> logging.Logger:
    """モジュール用ロガーを返す。"""
    return logging.getLogger(name)
