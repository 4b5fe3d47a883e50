"""検証層のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from stepguard.models.errors import StepguardError
from stepguard.reporters.json_report import format_result, format_summary
from stepguard.services.aws import AwsStateService
from stepguard.services.validation import ValidationService
from stepguard.storage.repository import ConfigRepository


def register_validation_tools(
    mcp: FastMCP,
    validation_service: ValidationService,
    repository: ConfigRepository,
    aws_service: AwsStateService,
) -> None:
    """検証関連のMCPツールを登録する。"""

    @mcp.tool()
    async def validate_step(step: int) -> dict[str, Any]:
        """指定したステップのAWSリソースを検証する。

        ステップ定義に記載されたCloudFormationスタックとリソースの存在、
        および各リソースのバリデーションルールを確認し、結果を返します。

        Args:
            step: ステップ番号（1始まり）。
        """
        if step < 1 or step > validation_service.total_steps:
            return {
                "error": "ValueError",
                "message": f"step must be between 1 and {validation_service.total_steps}",
            }
        try:
            result = await validation_service.validate_step(step)
            return format_result(result)
        except StepguardError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def validate_all_steps() -> dict[str, Any]:
        """全ステップを順に検証し、サマリーを返す。

        定義を読み込めないステップはスキップとして数えられます。
        """
        summary = await validation_service.validate_all_steps()
        return format_summary(summary)

    @mcp.tool()
    async def list_steps() -> dict[str, Any]:
        """定義済みのステップ一覧を取得する。

        ステップ番号、名前、説明、確認対象のリソース数を返します。
        """
        steps: list[dict[str, Any]] = []
        for number in await repository.list_steps():
            try:
                step = await repository.load_step(number)
            except StepguardError as e:
                steps.append({"number": number, "error": type(e).__name__, "message": str(e)})
                continue
            steps.append(
                {
                    "number": step.number,
                    "name": step.name,
                    "description": step.description,
                    "resource_count": len(step.resources),
                    "cloudformation_stacks": step.cloudformation_stacks,
                }
            )
        return {"steps": steps}

    @mcp.tool()
    async def get_rule_set(resource_type: str) -> dict[str, Any]:
        """リソースタイプに定義されたバリデーションルールを取得する。

        Args:
            resource_type: リソースタイプ（例: "AWS::EC2::VPC"）。
        """
        try:
            rules = await repository.load_rule_set(resource_type)
            return {"type": resource_type, "validation_rules": [r.model_dump() for r in rules]}
        except StepguardError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def run_aws_cli(command: str) -> dict[str, Any]:
        """参照系のAWS CLIコマンドを実行する。

        検証結果の調査用に、許可されたサービスの describe-/list-/get- 操作のみ実行できます。

        Args:
            command: AWS CLIコマンド文字列（例: "aws ec2 describe-vpcs"）。
        """
        try:
            result = await aws_service.run_aws_cli(command)
            return result.model_dump()
        except StepguardError as e:
            return {"error": type(e).__name__, "message": str(e)}
