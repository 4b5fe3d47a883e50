"""検証結果の出力先インターフェース。"""

from typing import Protocol, TextIO

from stepguard.models.validation import ValidationResult, ValidationSummary


class Reporter(Protocol):
    """ValidationResult / ValidationSummary を受け取って出力する。"""

    def report_result(self, result: ValidationResult) -> None: ...

    def report_summary(self, summary: ValidationSummary) -> None: ...


def get_reporter(output: str, *, verbose: bool = False, stream: TextIO | None = None) -> Reporter:
    """出力形式名からReporterを生成する。

    Raises:
        ValueError: 未知の出力形式の場合。
    """
    from stepguard.reporters.console import ConsoleReporter
    from stepguard.reporters.json_report import JsonReporter

    if output == "json":
        return JsonReporter(stream=stream)
    if output == "console":
        return ConsoleReporter(verbose=verbose, stream=stream)
    raise ValueError(f"Unknown output format: {output}")
