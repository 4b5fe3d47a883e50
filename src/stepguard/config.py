"""stepguardの設定管理。"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

_PACKAGE_ROOT = Path(__file__).parent
_REPO_ROOT = _PACKAGE_ROOT.parent.parent


class ServerConfig(BaseSettings):
    """実行設定。環境変数（STEPGUARD_*）から読み込み可能。"""

    model_config = {"env_prefix": "STEPGUARD_"}

    config_dir: Path = _REPO_ROOT / "config"
    total_steps: int = 6

    # AWS CLI
    region: str = "ap-northeast-1"
    profile: str = ""

    # 存在確認の並列度とタイムアウト（秒）
    max_concurrent_checks: int = 4
    check_timeout: float = 30.0

    output: Literal["console", "json"] = "console"
    log_level: str = "WARNING"

    # MCPサーバー
    host: str = "127.0.0.1"
    port: int = 8000
    url_token: str = ""
