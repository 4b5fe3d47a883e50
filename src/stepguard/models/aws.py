"""AWS CLI操作関連のデータモデル。"""

from pydantic import BaseModel


class CLIResult(BaseModel):
    """AWS CLI実行結果。"""

    success: bool
    stdout: str
    stderr: str
    exit_code: int
    setup_hint: str | None = None
