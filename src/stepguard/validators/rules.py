"""型付きバリデーションルールの評価ロジック。"""

import json
import logging
import operator as op
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from stepguard.models.validation import ValidationRule

logger = logging.getLogger(__name__)

CustomPredicate = Callable[[Any, bool, ValidationRule], bool]

# 数値比較演算子
_NUMERIC_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "gt": op.gt,
    "lt": op.lt,
    "ge": op.ge,
    "le": op.le,
}

_NUMERIC_MESSAGES: dict[str, str] = {
    "gt": "greater than",
    "lt": "less than",
    "ge": "greater than or equal to",
    "le": "less than or equal to",
}


@dataclass(frozen=True)
class RuleFailure:
    """ルール違反の内容。"""

    rule: ValidationRule
    message: str
    expected: Any = None
    actual: Any = None

    def __str__(self) -> str:
        return self.message


def to_number(value: Any) -> float | None:
    """int/floatをfloatに変換する。boolや数値以外はNone。"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    return None


def structurally_equal(left: Any, right: Any) -> bool:
    """型まで含めた構造的な等価判定。

    intとfloatは別の型として扱う。数値の型をまたいだ比較は ``eq`` 側でのみ行う。
    """
    if type(left) is not type(right):
        return False
    if isinstance(left, list):
        return len(left) == len(right) and all(structurally_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, dict):
        return left.keys() == right.keys() and all(structurally_equal(v, right[k]) for k, v in left.items())
    return bool(left == right)


def format_value(value: Any) -> str:
    """メッセージ・contains・regex用に値を文字列化する。"""
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list | dict):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


class RuleEvaluator:
    """ValidationRuleを解決済みの値に対して評価する。

    ``custom`` ルールは登録済みの述語があればそれを呼び出し、なければ常に成功する。
    """

    def __init__(self) -> None:
        self._custom: dict[str, CustomPredicate] = {}

    def register_custom(self, rule_name: str, predicate: CustomPredicate) -> None:
        """ルール名に対応するcustom述語を登録する。"""
        self._custom[rule_name] = predicate

    def evaluate(self, actual: Any, found: bool, rule: ValidationRule) -> RuleFailure | None:
        """ルールを評価する。

        Args:
            actual: パス解決後の値。未解決の場合はNone。
            found: パスが解決できたか。
            rule: 評価するルール。

        Returns:
            違反があればRuleFailure、なければNone。
        """
        if rule.type == "exists":
            if not found:
                return RuleFailure(rule, rule.error_message, expected=rule.property, actual=None)
            return None
        if rule.type == "property":
            return self._evaluate_property(actual if found else None, rule)
        if rule.type == "count":
            return self._evaluate_count(actual, rule)
        return self._evaluate_custom(actual, found, rule)

    def _evaluate_property(self, actual: Any, rule: ValidationRule) -> RuleFailure | None:
        expected = rule.expected
        operator = rule.operator
        # 演算子の無いプロパティルールは比較しない
        if operator is None:
            return None

        if operator == "eq":
            actual_num, expected_num = to_number(actual), to_number(expected)
            if actual_num is not None and expected_num is not None:
                matched = actual_num == expected_num
            else:
                matched = structurally_equal(actual, expected)
            if not matched:
                return self._fail(rule, f"expected {format_value(expected)}, got {format_value(actual)}", actual)
            return None

        if operator == "ne":
            if structurally_equal(actual, expected):
                return self._fail(rule, f"value should not be {format_value(expected)}", actual)
            return None

        if operator in _NUMERIC_OPERATORS:
            actual_num, expected_num = to_number(actual), to_number(expected)
            if actual_num is None or expected_num is None or not _NUMERIC_OPERATORS[operator](actual_num, expected_num):
                return self._fail(
                    rule,
                    f"{format_value(actual)} should be {_NUMERIC_MESSAGES[operator]} {format_value(expected)}",
                    actual,
                )
            return None

        if operator == "contains":
            if format_value(expected) not in format_value(actual):
                return self._fail(rule, f"{format_value(actual)} should contain {format_value(expected)}", actual)
            return None

        # regex
        if not _matches_pattern(actual, expected):
            return self._fail(rule, f"{format_value(actual)} does not match pattern {format_value(expected)}", actual)
        return None

    def _evaluate_count(self, actual: Any, rule: ValidationRule) -> RuleFailure | None:
        if not isinstance(actual, list | dict):
            return RuleFailure(rule, "cannot count non-collection type", expected=rule.expected, actual=actual)

        expected = rule.expected
        if isinstance(expected, bool) or not isinstance(expected, int):
            return RuleFailure(rule, "expected count must be an integer", expected=expected, actual=actual)

        count = len(actual)
        operator = rule.operator or "eq"

        if operator == "eq":
            passed, detail = count == expected, f"expected count {expected}, got {count}"
        elif operator == "ne":
            passed, detail = count != expected, f"count should not be {expected}"
        elif operator in _NUMERIC_OPERATORS:
            passed = _NUMERIC_OPERATORS[operator](count, expected)
            detail = f"count {count} should be {_NUMERIC_MESSAGES[operator]} {expected}"
        else:
            return RuleFailure(
                rule, f"unsupported operator for count: {operator}", expected=expected, actual=count
            )

        if passed:
            return None
        return RuleFailure(rule, f"{rule.error_message}: {detail}", expected=expected, actual=count)

    def _evaluate_custom(self, actual: Any, found: bool, rule: ValidationRule) -> RuleFailure | None:
        predicate = self._custom.get(rule.name)
        if predicate is None:
            return None
        try:
            satisfied = predicate(actual, found, rule)
        except Exception as e:
            logger.warning("Custom rule %s raised %s", rule.name, e)
            return self._fail(rule, f"custom check raised {type(e).__name__}: {e}", actual)
        if not satisfied:
            return self._fail(rule, f"custom check failed for {format_value(actual)}", actual)
        return None

    @staticmethod
    def _fail(rule: ValidationRule, detail: str, actual: Any) -> RuleFailure:
        return RuleFailure(rule, f"{rule.error_message}: {detail}", expected=rule.expected, actual=actual)


def _matches_pattern(actual: Any, pattern: Any) -> bool:
    """正規表現検索。不正なパターンは不一致として扱う。"""
    try:
        return re.search(format_value(pattern), format_value(actual)) is not None
    except re.error:
        return False
