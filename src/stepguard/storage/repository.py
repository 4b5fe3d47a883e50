"""YAMLファイルベースのステップ定義・ルールセットのリポジトリ。"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any

import pydantic
import yaml

from stepguard.models.errors import RuleSetLoadError, StepConfigInvalidError, StepConfigNotFoundError
from stepguard.models.validation import RuleSet, StepDefinition, ValidationRule

logger = logging.getLogger(__name__)

_STEP_FILE_RE = re.compile(r"^step(\d+)\.yaml$")


class ConfigRepository:
    """ステップ定義とリソースタイプ別ルールセットを読み込み、キャッシュする。

    config_dir配下のレイアウト:

    - ``steps/step<N>.yaml``: ステップ定義
    - ``resources/*.yaml``: ``type:`` を宣言したリソースタイプ別のルールセット

    ルールセットファイルが無いリソースタイプは空のルールセットとして扱う。
    キャッシュの構築はキー単位のロックで直列化し、一度読み込んだ値は読み取り専用で共有する。
    """

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = config_dir
        self._steps: dict[int, StepDefinition] = {}
        self._rule_sets: dict[str, list[ValidationRule]] = {}
        self._rule_files: dict[str, Path] | None = None
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    def _get_lock(self, key: str) -> asyncio.Lock:
        """キャッシュキー単位のasyncio.Lockを取得する。"""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def step_file(self, step_number: int) -> Path:
        return self._config_dir / "steps" / f"step{step_number}.yaml"

    async def load_step(self, step_number: int) -> StepDefinition:
        """ステップ定義を読み込む。

        Raises:
            StepConfigNotFoundError: ステップ定義ファイルが存在しない場合。
            StepConfigInvalidError: YAMLまたはスキーマが不正な場合。
        """
        cached = self._steps.get(step_number)
        if cached is not None:
            return cached

        async with self._get_lock(f"step:{step_number}"):
            if step_number in self._steps:
                return self._steps[step_number]

            step_file = self.step_file(step_number)
            if not step_file.is_file():
                raise StepConfigNotFoundError(step_number)

            try:
                data = _read_yaml(step_file)
                step = StepDefinition.model_validate(data)
            except (OSError, yaml.YAMLError, pydantic.ValidationError) as e:
                raise StepConfigInvalidError(step_number, str(e)) from e

            logger.debug("Loaded step %d from %s", step_number, step_file)
            self._steps[step_number] = step
            return step

    async def list_steps(self) -> list[int]:
        """定義ファイルが存在するステップ番号を昇順で返す。"""
        steps_dir = self._config_dir / "steps"
        if not steps_dir.exists():
            return []
        numbers = []
        for path in steps_dir.iterdir():
            match = _STEP_FILE_RE.match(path.name)
            if match:
                numbers.append(int(match.group(1)))
        return sorted(numbers)

    async def load_rule_set(self, resource_type: str) -> list[ValidationRule]:
        """リソースタイプのルールセットを読み込む。

        Raises:
            RuleSetLoadError: ルールセットファイルが読めない、または不正な場合。
        """
        cached = self._rule_sets.get(resource_type)
        if cached is not None:
            return cached

        async with self._get_lock(f"rules:{resource_type}"):
            if resource_type in self._rule_sets:
                return self._rule_sets[resource_type]

            rule_file = self._index_rule_files().get(resource_type)
            if rule_file is None:
                logger.debug("No rule set for %s, using empty rule set", resource_type)
                rules: list[ValidationRule] = []
            else:
                try:
                    rules = RuleSet.model_validate(_read_yaml(rule_file)).validation_rules
                except (OSError, yaml.YAMLError, pydantic.ValidationError) as e:
                    raise RuleSetLoadError(resource_type, str(e)) from e
                logger.debug("Loaded %d rules for %s from %s", len(rules), resource_type, rule_file)

            self._rule_sets[resource_type] = rules
            return rules

    def _index_rule_files(self) -> dict[str, Path]:
        """resources/*.yaml を走査し、リソースタイプとファイルの対応表を作る。"""
        if self._rule_files is not None:
            return self._rule_files

        index: dict[str, Path] = {}
        rules_dir = self._config_dir / "resources"
        if rules_dir.exists():
            for rule_file in sorted(rules_dir.glob("*.yaml")):
                try:
                    data = _read_yaml(rule_file)
                except (OSError, yaml.YAMLError) as e:
                    logger.warning("Skipping unreadable rule file %s: %s", rule_file, e)
                    continue
                if isinstance(data, dict) and isinstance(data.get("type"), str):
                    index[data["type"]] = rule_file

        self._rule_files = index
        return index


def _read_yaml(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)
