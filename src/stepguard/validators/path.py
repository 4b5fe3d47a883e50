"""ネストされたプロパティパスの解決。"""

import re
from typing import Any

# "IngressRules[0]" の形式: キー参照の後に配列インデックス
_INDEXED_SEGMENT_RE = re.compile(r"^([^\[]+)\[(\d+)\]$")


def resolve_path(root: Any, path: str) -> tuple[Any, bool]:
    """ドット区切り・インデックス付きのパスで値を取り出す。

    例: ``"IngressRules[0].FromPort"`` は IngressRules 配列の0番目の FromPort を指す。

    Args:
        root: リソースのプロパティ（dict/list/スカラーのネスト構造）。
        path: 解決するパス。

    Returns:
        (値, 見つかったか) のタプル。解決できない場合は (None, False)。
        例外は送出しない。
    """
    if not path:
        return None, False

    current = root
    for segment in path.split("."):
        if "[" in segment:
            match = _INDEXED_SEGMENT_RE.match(segment)
            if match is None:
                return None, False
            if not isinstance(current, dict) or match.group(1) not in current:
                return None, False
            sequence = current[match.group(1)]
            index = int(match.group(2))
            if not isinstance(sequence, list) or index >= len(sequence):
                return None, False
            current = sequence[index]
        else:
            if not isinstance(current, dict) or segment not in current:
                return None, False
            current = current[segment]

    return current, True
