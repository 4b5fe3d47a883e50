"""リソース単位・ステップ単位の検証状態の集約。"""

from typing import Any

from stepguard.models.validation import (
    ResourceDefinition,
    ResourceResult,
    ResourceStatus,
    StepStatus,
    ValidationResult,
    ValidationRule,
)
from stepguard.validators.path import resolve_path
from stepguard.validators.rules import RuleEvaluator

_FAILING_RESOURCE_STATUSES = frozenset({ResourceStatus.NOT_FOUND, ResourceStatus.MISCONFIGURED})


def evaluate_resource(
    definition: ResourceDefinition,
    exists: bool,
    actual_props: dict[str, Any],
    rule_set: list[ValidationRule],
    evaluator: RuleEvaluator,
) -> ResourceResult:
    """存在確認結果とルールセットから1リソース分の検証結果を組み立てる。

    definition.validation_rules の宣言順にルール名を処理し、同名のルールが
    ルールセットに複数あれば全て適用する。errorの違反は状態をMISCONFIGUREDにし、
    以降のルールが成功しても元には戻らない。

    Args:
        definition: 期待されるリソースの定義。
        exists: リソースが存在するか。
        actual_props: 実リソースのプロパティ。
        rule_set: リソースタイプのルールセット全体。
        evaluator: ルール評価器。

    Returns:
        リソース単位の検証結果。
    """
    result = ResourceResult(type=definition.type, id=definition.identifier, name=definition.name)
    if not exists:
        return result

    result.status = ResourceStatus.EXISTS
    result.actual = dict(actual_props)

    for rule_name in definition.validation_rules:
        for rule in rule_set:
            if rule.name != rule_name:
                continue

            result.expected[rule.property] = rule.expected
            value, found = resolve_path(actual_props, rule.property)
            failure = evaluator.evaluate(value, found, rule)
            if failure is None:
                continue

            if rule.severity == "error":
                result.status = ResourceStatus.MISCONFIGURED
                result.errors.append(str(failure))
            else:
                result.warnings.append(str(failure))

    return result


def determine_step_status(result: ValidationResult) -> StepStatus:
    """ステップの状態を優先順位に従って決定する。

    1. エラーがあればFAILED
    2. NOT_FOUND/MISCONFIGUREDのリソースがあればFAILED
    3. 警告があればWARNING
    4. それ以外はPASSED
    """
    if result.errors:
        return StepStatus.FAILED
    if any(resource.status in _FAILING_RESOURCE_STATUSES for resource in result.resources):
        return StepStatus.FAILED
    if result.warnings:
        return StepStatus.WARNING
    return StepStatus.PASSED
