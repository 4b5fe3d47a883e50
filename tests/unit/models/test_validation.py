"""バリデーションモデルのユニットテスト。"""

import pydantic
import pytest

from stepguard.models.errors import StepConfigError, StepConfigInvalidError, StepConfigNotFoundError, StepguardError
from stepguard.models.validation import (
    ResourceResult,
    ResourceStatus,
    StepDefinition,
    StepStatus,
    ValidationResult,
    ValidationRule,
    ValidationSummary,
)


class TestValidationRule:
    def test_defaults(self) -> None:
        rule = ValidationRule(name="vpc_tagged", type="exists", property="Tags.Name")
        assert rule.operator is None
        assert rule.expected is None
        assert rule.severity == "error"

    def test_structured_expected_value(self) -> None:
        rule = ValidationRule(name="r", type="property", expected={"Key": ["a", 1]}, operator="eq")
        assert rule.expected == {"Key": ["a", 1]}

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"type": "regex"},
            {"type": "property", "operator": "startswith"},
            {"type": "property", "severity": "info"},
        ],
    )
    def test_rejects_unknown_values(self, kwargs: dict[str, str]) -> None:
        with pytest.raises(pydantic.ValidationError):
            ValidationRule(name="r", **kwargs)  # type: ignore[arg-type]


class TestStepDefinition:
    def test_minimal(self) -> None:
        step = StepDefinition.model_validate({"number": 2, "name": "Container Registry"})
        assert step.resources == []
        assert step.cloudformation_stacks == []
        assert step.dependencies == []

    def test_resource_defaults(self) -> None:
        step = StepDefinition.model_validate(
            {"number": 1, "name": "Network", "resources": [{"type": "AWS::EC2::VPC", "name": "sbcntrVpc"}]}
        )
        resource = step.resources[0]
        assert resource.identifier == ""
        assert resource.required is False
        assert resource.validation_rules == []


class TestResults:
    def test_initial_states(self) -> None:
        assert ResourceResult(type="AWS::EC2::VPC", id="", name="v").status == ResourceStatus.NOT_FOUND
        result = ValidationResult(step_number=1, step_name="Network")
        assert result.status == StepStatus.PENDING
        assert result.duration == 0.0

    def test_summary_counters_start_at_zero(self) -> None:
        summary = ValidationSummary(total_steps=6)
        assert (summary.passed_steps, summary.failed_steps, summary.warning_steps, summary.skipped_steps) == (
            0,
            0,
            0,
            0,
        )

    def test_status_values_are_strings(self) -> None:
        assert StepStatus.WARNING == "WARNING"
        assert ResourceStatus.MISCONFIGURED.value == "MISCONFIGURED"


class TestErrors:
    def test_step_config_errors_share_base(self) -> None:
        assert issubclass(StepConfigNotFoundError, StepConfigError)
        assert issubclass(StepConfigInvalidError, StepConfigError)
        assert issubclass(StepConfigError, StepguardError)

    def test_invalid_error_message(self) -> None:
        error = StepConfigInvalidError(3, "bad yaml")
        assert error.step_number == 3
        assert str(error) == "Invalid step config for step3: bad yaml"
