"""レポーターのユニットテスト。"""

import io
import json

import pytest

from stepguard.models.validation import (
    ErrorKind,
    ResourceResult,
    ResourceStatus,
    StepStatus,
    ValidationError,
    ValidationResult,
    ValidationSummary,
    ValidationWarning,
)
from stepguard.reporters.base import get_reporter
from stepguard.reporters.console import ConsoleReporter
from stepguard.reporters.json_report import JsonReporter, format_result, format_summary


def _failed_result() -> ValidationResult:
    return ValidationResult(
        step_number=1,
        step_name="Network",
        status=StepStatus.FAILED,
        duration=1.23456,
        resources=[
            ResourceResult(
                type="AWS::EC2::VPC",
                id="",
                name="sbcntrVpc",
                status=ResourceStatus.MISCONFIGURED,
                expected={"CidrBlock": "10.0.0.0/16"},
                actual={"CidrBlock": "10.1.0.0/16"},
                errors=["VPC CIDR block is incorrect: expected 10.0.0.0/16, got 10.1.0.0/16"],
            )
        ],
        errors=[
            ValidationError(
                kind=ErrorKind.RESOURCE_NOT_FOUND,
                resource="sbcntr-base",
                message="CloudFormation stack 'sbcntr-base' not found",
                suggestion="Please create the stack 'sbcntr-base' as described in the handbook",
                document_ref="Step 1",
            )
        ],
        warnings=[ValidationWarning(resource="sbcntr-subnet-private-container-1a", message="[az] check")],
    )


class TestFormatResult:
    def test_keys_and_values(self) -> None:
        data = format_result(_failed_result())

        assert data["stepNumber"] == 1
        assert data["stepName"] == "Network"
        assert data["status"] == "FAILED"
        assert data["duration"] == "1.235s"
        assert data["resources"][0] == {
            "type": "AWS::EC2::VPC",
            "id": "",
            "name": "sbcntrVpc",
            "status": "MISCONFIGURED",
            "expected": {"CidrBlock": "10.0.0.0/16"},
            "actual": {"CidrBlock": "10.1.0.0/16"},
            "errors": ["VPC CIDR block is incorrect: expected 10.0.0.0/16, got 10.1.0.0/16"],
            "warnings": [],
        }
        assert data["errors"][0]["type"] == "RESOURCE_NOT_FOUND"
        assert data["errors"][0]["documentRef"] == "Step 1"
        assert data["warnings"] == [{"resource": "sbcntr-subnet-private-container-1a", "message": "[az] check"}]

    def test_summary(self) -> None:
        summary = ValidationSummary(total_steps=6, failed_steps=1, skipped_steps=5, results=[_failed_result()])
        data = format_summary(summary)
        assert data["totalSteps"] == 6
        assert data["failedSteps"] == 1
        assert data["warningSteps"] == 0
        assert data["skippedSteps"] == 5
        assert data["results"][0]["stepNumber"] == 1


class TestJsonReporter:
    def test_writes_indented_json(self) -> None:
        stream = io.StringIO()
        JsonReporter(stream=stream).report_result(_failed_result())

        output = stream.getvalue()
        assert output.endswith("\n")
        assert '\n  "stepNumber": 1' in output
        assert json.loads(output)["status"] == "FAILED"


class TestConsoleReporter:
    def test_result_output(self) -> None:
        stream = io.StringIO()
        ConsoleReporter(stream=stream).report_result(_failed_result())

        output = stream.getvalue()
        assert "STEP 1: Network" in output
        assert "CloudFormation stack 'sbcntr-base' not found" in output
        assert "Reference: Step 1" in output
        assert "[az] check" in output
        assert "Validation failed" in output

    def test_verbose_shows_expected_values(self) -> None:
        stream = io.StringIO()
        result = ValidationResult(
            step_number=1,
            step_name="Network",
            status=StepStatus.PASSED,
            resources=[
                ResourceResult(
                    type="AWS::EC2::VPC",
                    id="",
                    name="sbcntrVpc",
                    status=ResourceStatus.EXISTS,
                    expected={"CidrBlock": "10.0.0.0/16"},
                )
            ],
        )
        ConsoleReporter(verbose=True, stream=stream).report_result(result)
        output = stream.getvalue()
        assert "CidrBlock: expected '10.0.0.0/16'" in output
        assert "All checks passed" in output

    def test_summary_all_passed(self) -> None:
        stream = io.StringIO()
        result = ValidationResult(step_number=1, step_name="Network", status=StepStatus.PASSED)
        ConsoleReporter(stream=stream).report_summary(
            ValidationSummary(total_steps=1, passed_steps=1, results=[result])
        )
        output = stream.getvalue()
        assert "VALIDATION SUMMARY REPORT" in output
        assert "All steps validated successfully" in output

    def test_summary_with_failures(self) -> None:
        stream = io.StringIO()
        ConsoleReporter(stream=stream).report_summary(
            ValidationSummary(total_steps=6, failed_steps=1, skipped_steps=5, results=[_failed_result()])
        )
        output = stream.getvalue()
        assert "1 step(s) failed validation." in output
        assert "- CloudFormation stack 'sbcntr-base' not found" in output


class TestGetReporter:
    def test_known_formats(self) -> None:
        assert isinstance(get_reporter("json"), JsonReporter)
        assert isinstance(get_reporter("console", verbose=True), ConsoleReporter)

    def test_unknown_format(self) -> None:
        with pytest.raises(ValueError, match="Unknown output format: xml"):
            get_reporter("xml")
