"""ServerConfigのユニットテスト。"""

from pathlib import Path

import pydantic
import pytest

from stepguard.config import ServerConfig


class TestServerConfig:
    def test_defaults(self) -> None:
        config = ServerConfig()
        assert config.total_steps == 6
        assert config.region == "ap-northeast-1"
        assert config.output == "console"
        assert (config.config_dir / "steps" / "step1.yaml").is_file()

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("STEPGUARD_REGION", "us-east-1")
        monkeypatch.setenv("STEPGUARD_CONFIG_DIR", str(tmp_path))
        monkeypatch.setenv("STEPGUARD_MAX_CONCURRENT_CHECKS", "8")

        config = ServerConfig()
        assert config.region == "us-east-1"
        assert config.config_dir == tmp_path
        assert config.max_concurrent_checks == 8

    def test_invalid_output(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            ServerConfig(output="xml")  # type: ignore[arg-type]
