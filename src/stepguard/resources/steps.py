"""ステップ定義のMCPリソース定義。"""

import yaml
from fastmcp import FastMCP

from stepguard.storage.repository import ConfigRepository


def register_step_resources(mcp: FastMCP, repository: ConfigRepository) -> None:
    """ステップ定義関連のMCPリソースを登録する。"""

    @mcp.resource("stepguard://steps/{number}")
    async def step_definition(number: str) -> str:
        """ステップ定義を取得する。

        確認対象のリソース、適用するルール名、CloudFormationスタックを返します。
        """
        step = await repository.load_step(int(number))
        return yaml.safe_dump(step.model_dump(), allow_unicode=True, sort_keys=False, default_flow_style=False)
