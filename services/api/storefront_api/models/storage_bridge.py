"""キー・バリュー型のストレージブリッジ。

ブラウザ側の外部ストレージ（グローバルオブジェクト）を、
呼び出し側へ明示的に渡す依存として表現する。

本モジュールは以下を担当する。
- StorageBridge（Protocol）: get / set / delete / list の非同期インターフェース
- InMemoryStorageBridge: プロセス内メモリによる実装

Note:
    - shared=True のキーは全利用者で共有するパーティションに保存する。
    - shared=False（既定）のキーは個別パーティションに保存する。
    - 本実装はプロセス内メモリを利用するため、API 再起動で内容は失われる。
"""

from __future__ import annotations

from threading import Lock
from typing import Optional, Protocol


class StorageBridge(Protocol):
    """文字列キーで値を保存するストレージの差し替えインターフェース。"""

    async def get(self, key: str, shared: bool = False) -> Optional[str]:
        """キーに対応する値を返す。存在しない場合は None。"""
        ...

    async def set(self, key: str, value: str, shared: bool = False) -> None:
        """キーに値を保存する。"""
        ...

    async def delete(self, key: str, shared: bool = False) -> bool:
        """キーを削除する。削除できた場合は True。"""
        ...

    async def list(self, prefix: str = "", shared: bool = False) -> list[str]:
        """prefix で始まるキーの一覧を返す。"""
        ...


class InMemoryStorageBridge:
    """StorageBridge のインメモリ実装。"""

    def __init__(self) -> None:
        self._private: dict[str, str] = {}
        self._shared: dict[str, str] = {}
        self._lock = Lock()

    def _partition(self, shared: bool) -> dict[str, str]:
        return self._shared if shared else self._private

    async def get(self, key: str, shared: bool = False) -> Optional[str]:
        with self._lock:
            return self._partition(shared).get(key)

    async def set(self, key: str, value: str, shared: bool = False) -> None:
        if not key:
            raise ValueError("key must not be empty")
        with self._lock:
            self._partition(shared)[key] = value

    async def delete(self, key: str, shared: bool = False) -> bool:
        with self._lock:
            return self._partition(shared).pop(key, None) is not None

    async def list(self, prefix: str = "", shared: bool = False) -> list[str]:
        with self._lock:
            return sorted(k for k in self._partition(shared) if k.startswith(prefix))


_STORAGE_BRIDGE: Optional[InMemoryStorageBridge] = None


def get_storage_bridge() -> InMemoryStorageBridge:
    """ストレージブリッジのシングルトンを返す。"""
    global _STORAGE_BRIDGE
    if _STORAGE_BRIDGE is None:
        _STORAGE_BRIDGE = InMemoryStorageBridge()
    return _STORAGE_BRIDGE
