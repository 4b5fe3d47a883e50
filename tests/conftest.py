"""テスト共通フィクスチャ。"""

from pathlib import Path

import pytest

from stepguard.config import ServerConfig
from stepguard.services.aws import AwsStateService
from stepguard.storage.repository import ConfigRepository
from stepguard.validators.rules import RuleEvaluator


@pytest.fixture
def config_dir() -> Path:
    """リポジトリ同梱の設定ディレクトリ。"""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def repository(config_dir: Path) -> ConfigRepository:
    """テスト用ConfigRepository。"""
    return ConfigRepository(config_dir=config_dir)


@pytest.fixture
def evaluator() -> RuleEvaluator:
    return RuleEvaluator()


@pytest.fixture
def aws_service() -> AwsStateService:
    """テスト用AwsStateService。"""
    return AwsStateService(region="ap-northeast-1")


@pytest.fixture
def server_config(config_dir: Path) -> ServerConfig:
    """テスト用ServerConfig。"""
    return ServerConfig(config_dir=config_dir, check_timeout=5.0)
