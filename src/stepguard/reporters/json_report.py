"""機械可読なJSON形式のレポーター。"""

import json
import sys
from typing import Any, TextIO

from stepguard.models.validation import ValidationResult, ValidationSummary


def format_result(result: ValidationResult) -> dict[str, Any]:
    """ValidationResultをcamelCaseキーの辞書に変換する。"""
    return {
        "stepNumber": result.step_number,
        "stepName": result.step_name,
        "status": result.status.value,
        "duration": f"{result.duration:.3f}s",
        "resources": [
            {
                "type": res.type,
                "id": res.id,
                "name": res.name,
                "status": res.status.value,
                "expected": res.expected,
                "actual": res.actual,
                "errors": res.errors,
                "warnings": res.warnings,
            }
            for res in result.resources
        ],
        "errors": [
            {
                "type": err.kind.value,
                "resource": err.resource,
                "property": err.property,
                "expected": err.expected,
                "actual": err.actual,
                "message": err.message,
                "suggestion": err.suggestion,
                "documentRef": err.document_ref,
            }
            for err in result.errors
        ],
        "warnings": [{"resource": warn.resource, "message": warn.message} for warn in result.warnings],
    }


def format_summary(summary: ValidationSummary) -> dict[str, Any]:
    """ValidationSummaryをcamelCaseキーの辞書に変換する。"""
    return {
        "totalSteps": summary.total_steps,
        "passedSteps": summary.passed_steps,
        "failedSteps": summary.failed_steps,
        "warningSteps": summary.warning_steps,
        "skippedSteps": summary.skipped_steps,
        "results": [format_result(result) for result in summary.results],
    }


class JsonReporter:
    """検証結果をインデント付きJSONで出力する。"""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def _write(self, data: dict[str, Any]) -> None:
        stream = self._stream or sys.stdout
        stream.write(json.dumps(data, indent=2, ensure_ascii=False))
        stream.write("\n")

    def report_result(self, result: ValidationResult) -> None:
        self._write(format_result(result))

    def report_summary(self, summary: ValidationSummary) -> None:
        self._write(format_summary(summary))
