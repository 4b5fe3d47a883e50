"""ステップ単位・全ステップの検証を行うサービス。"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from stepguard.models.errors import RuleSetLoadError, StepConfigError
from stepguard.models.validation import (
    ErrorKind,
    ResourceDefinition,
    ResourceResult,
    ResourceStatus,
    StepStatus,
    ValidationError,
    ValidationResult,
    ValidationRule,
    ValidationSummary,
    ValidationWarning,
)
from stepguard.services.registry import CheckRegistry
from stepguard.storage.repository import ConfigRepository
from stepguard.validators.resource import determine_step_status, evaluate_resource
from stepguard.validators.rules import RuleEvaluator

logger = logging.getLogger(__name__)

StackExists = Callable[[str], Awaitable[bool]]


class ValidationService:
    """ステップ定義に従ってリソースの実状態を検証する。

    ステップは番号順に1つずつ検証する。ステップ内のリソース存在確認は
    セマフォで並列度を制限して同時に実行し、結果は宣言順に並べ直す。
    """

    def __init__(
        self,
        repository: ConfigRepository,
        registry: CheckRegistry,
        stack_exists: StackExists,
        *,
        evaluator: RuleEvaluator | None = None,
        total_steps: int = 6,
        max_concurrent_checks: int = 4,
        check_timeout: float | None = 30.0,
    ) -> None:
        self._repository = repository
        self._registry = registry
        self._stack_exists = stack_exists
        self._evaluator = evaluator or RuleEvaluator()
        self._total_steps = total_steps
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent_checks))
        self._check_timeout = check_timeout

    @property
    def total_steps(self) -> int:
        return self._total_steps

    async def validate_step(self, step_number: int) -> ValidationResult:
        """1ステップ分のリソースを検証する。

        Args:
            step_number: ステップ番号。

        Returns:
            ステップ単位の検証結果。

        Raises:
            StepConfigError: ステップ定義を読み込めない場合。
        """
        started = time.monotonic()
        step = await self._repository.load_step(step_number)

        result = ValidationResult(step_number=step_number, step_name=step.name)
        document_ref = f"Step {step_number}"

        for stack_name in step.cloudformation_stacks:
            if not await self._check_stack(stack_name):
                result.errors.append(
                    ValidationError(
                        kind=ErrorKind.RESOURCE_NOT_FOUND,
                        resource=stack_name,
                        message=f"CloudFormation stack '{stack_name}' not found",
                        suggestion=f"Please create the stack '{stack_name}' as described in the handbook",
                        document_ref=document_ref,
                    )
                )

        resource_results = await asyncio.gather(
            *(self._validate_resource(resource, result) for resource in step.resources)
        )

        for resource, resource_result in zip(step.resources, resource_results):
            result.resources.append(resource_result)

            if resource_result.status == ResourceStatus.NOT_FOUND and resource.required:
                result.errors.append(
                    ValidationError(
                        kind=ErrorKind.RESOURCE_NOT_FOUND,
                        resource=resource.name,
                        message=f"Required resource '{resource.name}' not found",
                        suggestion=(
                            f"Please create the resource '{resource.name}' as described in step {step_number}"
                        ),
                        document_ref=document_ref,
                    )
                )

            for warning in resource_result.warnings:
                result.warnings.append(ValidationWarning(resource=resource.name, message=warning))

        result.status = determine_step_status(result)
        result.duration = time.monotonic() - started
        logger.info("Step %d (%s): %s", step_number, step.name, result.status.value)
        return result

    async def validate_all_steps(self) -> ValidationSummary:
        """全ステップを順に検証する。

        定義を読み込めないステップはスキップとして数え、結果には含めない。
        1ステップの失敗で全体の実行は中断しない。
        """
        summary = ValidationSummary(total_steps=self._total_steps)

        for step_number in range(1, self._total_steps + 1):
            try:
                result = await self.validate_step(step_number)
            except StepConfigError as e:
                logger.warning("Skipping step %d: %s", step_number, e)
                summary.skipped_steps += 1
                continue

            summary.results.append(result)
            if result.status == StepStatus.PASSED:
                summary.passed_steps += 1
            elif result.status == StepStatus.FAILED:
                summary.failed_steps += 1
            elif result.status == StepStatus.WARNING:
                summary.warning_steps += 1
            elif result.status == StepStatus.SKIPPED:
                summary.skipped_steps += 1

        return summary

    async def _check_stack(self, stack_name: str) -> bool:
        """スタックの存在を確認する。失敗・タイムアウトは「存在しない」として扱う。"""
        try:
            async with asyncio.timeout(self._check_timeout):
                return await self._stack_exists(stack_name)
        except TimeoutError:
            logger.warning("Timed out checking stack %s", stack_name)
            return False
        except Exception as e:
            logger.warning("Failed to check stack %s: %s", stack_name, e)
            return False

    async def _validate_resource(self, resource: ResourceDefinition, step_result: ValidationResult) -> ResourceResult:
        rule_set = await self._load_rule_set(resource.type, step_result)
        exists, actual_props, check_error = await self._check_exists(resource)

        result = evaluate_resource(resource, exists, actual_props, rule_set, self._evaluator)
        if check_error:
            result.errors.append(check_error)
        return result

    async def _load_rule_set(self, resource_type: str, step_result: ValidationResult) -> list[ValidationRule]:
        """ルールセットを取得する。読み込めない場合は空として扱い、ステップに警告を残す。"""
        try:
            return await self._repository.load_rule_set(resource_type)
        except RuleSetLoadError as e:
            logger.warning("%s", e)
            message = f"Validation rules for {resource_type} could not be loaded"
            if not any(w.resource == resource_type and w.message == message for w in step_result.warnings):
                step_result.warnings.append(ValidationWarning(resource=resource_type, message=message))
            return []

    async def _check_exists(self, resource: ResourceDefinition) -> tuple[bool, dict[str, Any], str | None]:
        """存在確認を行う。失敗・タイムアウトは「存在しない」として扱う。

        Returns:
            (存在するか, プロパティ, 失敗時のメッセージ) のタプル。
        """
        identifier = resource.identifier or resource.name
        async with self._semaphore:
            try:
                async with asyncio.timeout(self._check_timeout):
                    exists, props = await self._registry.check(resource.type, identifier)
            except TimeoutError:
                logger.warning("Timed out checking %s/%s", resource.type, identifier)
                return False, {}, f"Failed to check resource: timed out after {self._check_timeout}s"
            except Exception as e:
                logger.warning("Failed to check %s/%s: %s", resource.type, identifier, e)
                return False, {}, f"Failed to check resource: {e}"
        return exists, props or {}, None
