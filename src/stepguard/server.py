"""FastMCPベースのMCPサーバーエントリポイント。"""

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from stepguard.config import ServerConfig
from stepguard.resources.steps import register_step_resources
from stepguard.services.aws import AwsStateService
from stepguard.services.registry import CheckRegistry
from stepguard.services.validation import ValidationService
from stepguard.storage.repository import ConfigRepository
from stepguard.tools.validation import register_validation_tools


def create_services(config: ServerConfig) -> tuple[ConfigRepository, AwsStateService, ValidationService]:
    """設定から各サービスを組み立てる。

    Returns:
        (ConfigRepository, AwsStateService, ValidationService) のタプル。
    """
    repository = ConfigRepository(config_dir=config.config_dir)

    aws_service = AwsStateService(region=config.region, profile=config.profile)
    registry = CheckRegistry()
    aws_service.register_checks(registry)

    validation_service = ValidationService(
        repository,
        registry,
        aws_service.stack_exists,
        total_steps=config.total_steps,
        max_concurrent_checks=config.max_concurrent_checks,
        check_timeout=config.check_timeout,
    )
    return repository, aws_service, validation_service


def create_server(config: ServerConfig | None = None) -> FastMCP:
    """stepguard MCPサーバーを作成し、ツール・リソースを登録する。

    Args:
        config: 実行設定。Noneの場合はデフォルト設定を使用。

    Returns:
        設定済みのFastMCPインスタンス。
    """
    if config is None:
        config = ServerConfig()

    mcp = FastMCP("stepguard")

    repository, aws_service, validation_service = create_services(config)

    register_validation_tools(mcp, validation_service, repository, aws_service)
    register_step_resources(mcp, repository)

    # ヘルスチェックエンドポイント
    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return mcp
