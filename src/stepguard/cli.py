"""Typerベースのコマンドラインインターフェース。"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any

import pydantic
import typer
from rich.console import Console

from stepguard.config import ServerConfig
from stepguard.models.errors import StepguardError
from stepguard.models.validation import StepStatus
from stepguard.reporters.base import get_reporter

app = typer.Typer(
    name="stepguard",
    help="Validates AWS resources created during the hands-on steps.",
    add_completion=False,
    no_args_is_help=True,
)

err_console = Console(stderr=True)


def _load_config(**overrides: Any) -> ServerConfig:
    """CLIで指定された値だけを環境変数由来の設定に上書きする。"""
    return ServerConfig(**{k: v for k, v in overrides.items() if v is not None})


def _configure_logging(config: ServerConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def validate(
    step: Annotated[int | None, typer.Option("--step", "-s", help="Step number to validate")] = None,
    all_steps: Annotated[bool, typer.Option("--all", "-a", help="Validate all steps")] = False,
    output: Annotated[str | None, typer.Option("--output", "-o", help="Output format (console, json)")] = None,
    region: Annotated[str | None, typer.Option("--region", "-r", help="AWS region")] = None,
    profile: Annotated[str | None, typer.Option("--profile", "-p", help="AWS profile")] = None,
    config_dir: Annotated[
        Path | None, typer.Option("--config-dir", help="Directory containing steps/ and resources/")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output")] = False,
) -> None:
    """Validate AWS resources for a specific step or all steps."""
    from stepguard.server import create_services

    try:
        config = _load_config(output=output, region=region, profile=profile, config_dir=config_dir)
    except pydantic.ValidationError as e:
        err_console.print(f"❌ Error: invalid option: {e.errors()[0]['msg']}")
        raise typer.Exit(code=1) from e
    _configure_logging(config, verbose)

    # Noneは全ステップを意味する
    target: int | None = None
    if not all_steps:
        if step is None or step < 1 or step > config.total_steps:
            err_console.print(
                f"❌ Error: please specify a valid step number (1-{config.total_steps}) or use --all flag"
            )
            raise typer.Exit(code=1)
        target = step

    try:
        reporter = get_reporter(config.output, verbose=verbose)
    except ValueError as e:
        err_console.print(f"❌ Error: {e}")
        raise typer.Exit(code=1) from e

    _, _, validation_service = create_services(config)

    if target is None:
        summary = asyncio.run(validation_service.validate_all_steps())
        reporter.report_summary(summary)
        if summary.failed_steps > 0:
            raise typer.Exit(code=1)
        return

    try:
        result = asyncio.run(validation_service.validate_step(target))
    except StepguardError as e:
        err_console.print(f"❌ Error: validation failed: {e}")
        raise typer.Exit(code=1) from e

    reporter.report_result(result)
    if result.status == StepStatus.FAILED:
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Annotated[str | None, typer.Option(help="Bind address")] = None,
    port: Annotated[int | None, typer.Option(help="Bind port")] = None,
    config_dir: Annotated[Path | None, typer.Option("--config-dir")] = None,
) -> None:
    """Run the MCP server over streamable HTTP."""
    import uvicorn
    from starlette.middleware import Middleware

    from stepguard.middleware import TokenAuthMiddleware
    from stepguard.server import create_server

    config = _load_config(host=host, port=port, config_dir=config_dir)
    _configure_logging(config, verbose=False)

    mcp = create_server(config)
    http_app = mcp.http_app(
        transport="streamable-http",
        middleware=[Middleware(TokenAuthMiddleware, url_token=config.url_token)],
    )
    uvicorn.run(http_app, host=config.host, port=config.port)
