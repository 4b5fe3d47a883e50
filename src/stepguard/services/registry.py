"""リソースタイプ別の存在確認関数のレジストリ。"""

from collections.abc import Awaitable, Callable
from typing import Any

# identifier -> (exists, properties)
ExistenceCheck = Callable[[str], Awaitable[tuple[bool, dict[str, Any]]]]
# (resource_type, identifier) -> (exists, properties)
FallbackCheck = Callable[[str, str], Awaitable[tuple[bool, dict[str, Any]]]]


class CheckRegistry:
    """リソースタイプ文字列と存在確認関数の対応を保持する。

    起動時にリソース状態の取得側（AwsStateService等）が登録する。
    検証エンジン自体はリソースタイプ固有の処理を持たない。
    """

    def __init__(self) -> None:
        self._checks: dict[str, ExistenceCheck] = {}
        self._fallback: FallbackCheck | None = None

    def register(self, resource_type: str, check: ExistenceCheck) -> None:
        self._checks[resource_type] = check

    def set_fallback(self, check: FallbackCheck) -> None:
        """未登録のリソースタイプに使う確認関数を設定する。"""
        self._fallback = check

    def types(self) -> list[str]:
        return sorted(self._checks)

    async def check(self, resource_type: str, identifier: str) -> tuple[bool, dict[str, Any]]:
        """リソースの存在とプロパティを取得する。

        確認手段が無いリソースタイプは存在しないものとして扱う。
        """
        check = self._checks.get(resource_type)
        if check is not None:
            return await check(identifier)
        if self._fallback is not None:
            return await self._fallback(resource_type, identifier)
        return False, {}
