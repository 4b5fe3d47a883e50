"""ConfigRepositoryのユニットテスト。"""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from stepguard.models.errors import RuleSetLoadError, StepConfigInvalidError, StepConfigNotFoundError
from stepguard.storage import repository as repository_module
from stepguard.storage.repository import ConfigRepository


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


class TestBundledConfig:
    async def test_list_steps(self, repository: ConfigRepository) -> None:
        assert await repository.list_steps() == [1, 2, 3, 4, 5, 6]

    async def test_every_step_loads(self, repository: ConfigRepository) -> None:
        for number in await repository.list_steps():
            step = await repository.load_step(number)
            assert step.number == number
            assert step.resources

    async def test_every_referenced_rule_exists(self, repository: ConfigRepository) -> None:
        """ステップ定義が参照するルール名は全てルールセットに存在する。"""
        for number in await repository.list_steps():
            step = await repository.load_step(number)
            for resource in step.resources:
                names = {rule.name for rule in await repository.load_rule_set(resource.type)}
                missing = set(resource.validation_rules) - names
                assert not missing, f"step{number} {resource.name}: {missing}"

    async def test_load_step1(self, repository: ConfigRepository) -> None:
        step = await repository.load_step(1)
        assert step.name == "Network"
        assert step.cloudformation_stacks == ["sbcntr-base"]
        assert step.resources[0].type == "AWS::EC2::VPC"
        assert step.resources[0].required is True

    async def test_load_rule_set(self, repository: ConfigRepository) -> None:
        rules = await repository.load_rule_set("AWS::EC2::SecurityGroup")
        by_name = {rule.name: rule for rule in rules}
        assert by_name["sg_has_ingress"].type == "count"
        assert by_name["sg_ingress_http"].property == "IngressRules[0].FromPort"
        assert by_name["sg_ingress_http"].expected == 80


class TestConfigRepository:
    async def test_missing_step(self, tmp_path: Path) -> None:
        repo = ConfigRepository(tmp_path)
        with pytest.raises(StepConfigNotFoundError) as exc_info:
            await repo.load_step(1)
        assert exc_info.value.step_number == 1
        assert str(exc_info.value) == "Step config not found: step1"

    async def test_invalid_yaml(self, tmp_path: Path) -> None:
        _write(tmp_path / "steps" / "step1.yaml", "name: [unclosed\n")
        with pytest.raises(StepConfigInvalidError):
            await ConfigRepository(tmp_path).load_step(1)

    async def test_invalid_schema(self, tmp_path: Path) -> None:
        _write(tmp_path / "steps" / "step1.yaml", "number: 1\nresources: []\n")
        with pytest.raises(StepConfigInvalidError) as exc_info:
            await ConfigRepository(tmp_path).load_step(1)
        assert exc_info.value.step_number == 1

    async def test_step_is_cached(self, tmp_path: Path) -> None:
        step_file = tmp_path / "steps" / "step1.yaml"
        _write(step_file, "number: 1\nname: First\n")
        repo = ConfigRepository(tmp_path)

        first = await repo.load_step(1)
        step_file.write_text("number: 1\nname: Changed\n", encoding="utf-8")
        second = await repo.load_step(1)

        assert first is second
        assert second.name == "First"

    async def test_concurrent_loads_read_once(self, tmp_path: Path) -> None:
        _write(tmp_path / "steps" / "step1.yaml", "number: 1\nname: First\n")
        repo = ConfigRepository(tmp_path)

        with patch.object(repository_module, "_read_yaml", wraps=repository_module._read_yaml) as read:
            steps = await asyncio.gather(*(repo.load_step(1) for _ in range(5)))

        assert read.call_count == 1
        assert all(step is steps[0] for step in steps)

    async def test_list_steps_ignores_other_files(self, tmp_path: Path) -> None:
        for name in ("step2.yaml", "step10.yaml", "step1.yml", "notes.yaml", "stepx.yaml"):
            _write(tmp_path / "steps" / name, "number: 1\nname: x\n")
        assert await ConfigRepository(tmp_path).list_steps() == [2, 10]

    async def test_list_steps_without_directory(self, tmp_path: Path) -> None:
        assert await ConfigRepository(tmp_path).list_steps() == []

    async def test_unknown_resource_type_has_empty_rules(self, tmp_path: Path) -> None:
        assert await ConfigRepository(tmp_path).load_rule_set("AWS::S3::Bucket") == []

    async def test_rule_set_indexed_by_declared_type(self, tmp_path: Path) -> None:
        _write(
            tmp_path / "resources" / "anything.yaml",
            "type: AWS::S3::Bucket\nvalidation_rules:\n  - name: b\n    type: exists\n    property: Arn\n",
        )
        rules = await ConfigRepository(tmp_path).load_rule_set("AWS::S3::Bucket")
        assert [rule.name for rule in rules] == ["b"]
        assert rules[0].severity == "error"

    async def test_invalid_rule_set(self, tmp_path: Path) -> None:
        _write(
            tmp_path / "resources" / "bucket.yaml",
            "type: AWS::S3::Bucket\nvalidation_rules:\n  - name: b\n    type: unknown\n",
        )
        with pytest.raises(RuleSetLoadError) as exc_info:
            await ConfigRepository(tmp_path).load_rule_set("AWS::S3::Bucket")
        assert exc_info.value.resource_type == "AWS::S3::Bucket"

    async def test_unreadable_rule_file_is_skipped(self, tmp_path: Path) -> None:
        _write(tmp_path / "resources" / "broken.yaml", "type: [unclosed\n")
        _write(tmp_path / "resources" / "vpc.yaml", "type: AWS::EC2::VPC\nvalidation_rules: []\n")
        assert await ConfigRepository(tmp_path).load_rule_set("AWS::EC2::VPC") == []
