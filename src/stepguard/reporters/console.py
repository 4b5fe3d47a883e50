"""ターミナル向けのコンソールレポーター。"""

from typing import TextIO

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from stepguard.models.validation import (
    ResourceResult,
    ResourceStatus,
    StepStatus,
    ValidationError,
    ValidationResult,
    ValidationSummary,
    ValidationWarning,
)

_STEP_STATUS_LABELS: dict[StepStatus, str] = {
    StepStatus.PASSED: "[green]✅ PASSED[/green]",
    StepStatus.FAILED: "[red]❌ FAILED[/red]",
    StepStatus.WARNING: "[yellow]⚠️  WARNING[/yellow]",
    StepStatus.SKIPPED: "⏭️  SKIPPED",
    StepStatus.PENDING: "⏸️  PENDING",
}

_RESOURCE_STATUS_ICONS: dict[ResourceStatus, str] = {
    ResourceStatus.EXISTS: "✅",
    ResourceStatus.NOT_FOUND: "❌",
    ResourceStatus.MISCONFIGURED: "⚠️ ",
    ResourceStatus.PENDING: "⏸️ ",
}

_FOOTERS: dict[StepStatus, str] = {
    StepStatus.PASSED: "✅ All checks passed! You can proceed to the next step.",
    StepStatus.WARNING: "⚠️  Validation completed with warnings. Please review the warnings above.",
    StepStatus.FAILED: "❌ Validation failed. Please fix the errors above before proceeding.",
    StepStatus.SKIPPED: "⏭️  Validation was skipped.",
}


class ConsoleReporter:
    """richを使って検証結果を人間向けに出力する。

    verbose時はリソースごとの期待値も表示する。
    """

    def __init__(self, verbose: bool = False, stream: TextIO | None = None) -> None:
        self._verbose = verbose
        self._console = Console(file=stream, highlight=False)

    def report_result(self, result: ValidationResult) -> None:
        self._print_header(result)
        self._print_resources(result.resources)
        self._print_errors(result.errors)
        self._print_warnings(result.warnings)
        self._console.print(Rule(style="dim"))
        footer = _FOOTERS.get(result.status)
        if footer:
            self._console.print(footer)

    def report_summary(self, summary: ValidationSummary) -> None:
        self._console.print(Panel("VALIDATION SUMMARY REPORT", expand=False))
        self._console.print(f"Total Steps: {summary.total_steps}")
        self._console.print(f"✅ Passed: {summary.passed_steps}")
        self._console.print(f"⚠️  Warning: {summary.warning_steps}")
        self._console.print(f"❌ Failed: {summary.failed_steps}")
        self._console.print(f"⏭️  Skipped: {summary.skipped_steps}\n")

        for result in summary.results:
            self._console.print(f"{_STEP_STATUS_LABELS[result.status]} Step {result.step_number}: {result.step_name}")
            if result.status == StepStatus.FAILED:
                for err in result.errors:
                    self._console.print(f"   - {err.message}", markup=False)

        self._console.print(Rule(style="dim"))
        if summary.failed_steps == 0 and summary.skipped_steps == 0:
            self._console.print("🎉 Congratulations! All steps validated successfully!")
        elif summary.failed_steps > 0:
            self._console.print(f"❌ {summary.failed_steps} step(s) failed validation.")
            self._console.print("Please review and fix the errors before proceeding.")
        else:
            self._console.print("⚠️  Some steps were skipped.")
            self._console.print("Run individual step validations for more details.")

    def _print_header(self, result: ValidationResult) -> None:
        self._console.print(Rule(f"STEP {result.step_number}: {result.step_name}"))
        self._console.print(f"Status: {_STEP_STATUS_LABELS[result.status]}")
        self._console.print(f"Duration: {result.duration:.2f}s\n")

    def _print_resources(self, resources: list[ResourceResult]) -> None:
        if not resources:
            return

        table = Table(title="Resources Checked", show_lines=False)
        table.add_column("")
        table.add_column("Name")
        table.add_column("Type")
        table.add_column("Details")
        for resource in resources:
            details = [f"❌ {e}" for e in resource.errors] + [f"⚠️  {w}" for w in resource.warnings]
            if self._verbose:
                details += [f"{path}: expected {value!r}" for path, value in resource.expected.items()]
            table.add_row(
                _RESOURCE_STATUS_ICONS[resource.status],
                resource.name,
                resource.type,
                Text("\n".join(details)),
            )
        self._console.print(table)

    def _print_errors(self, errors: list[ValidationError]) -> None:
        if not errors:
            return
        self._console.print("[red]❌ Errors:[/red]")
        for err in errors:
            self._console.print(f"• {err.message}", markup=False)
            if err.suggestion:
                self._console.print(f"  💡 Suggestion: {err.suggestion}", markup=False)
            if err.document_ref:
                self._console.print(f"  📖 Reference: {err.document_ref}", markup=False)

    def _print_warnings(self, warnings: list[ValidationWarning]) -> None:
        if not warnings:
            return
        self._console.print("[yellow]⚠️  Warnings:[/yellow]")
        for warn in warnings:
            self._console.print(f"• {warn.resource}: {warn.message}", markup=False)
