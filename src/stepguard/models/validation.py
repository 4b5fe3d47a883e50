"""バリデーション関連のデータモデル。"""

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, JsonValue

RuleKind = Literal["property", "exists", "count", "custom"]
Operator = Literal["eq", "ne", "gt", "lt", "ge", "le", "contains", "regex"]
Severity = Literal["error", "warning"]


class ResourceStatus(StrEnum):
    """リソース単位の検証状態。"""

    NOT_FOUND = "NOT_FOUND"
    EXISTS = "EXISTS"
    MISCONFIGURED = "MISCONFIGURED"
    PENDING = "PENDING"


class StepStatus(StrEnum):
    """ステップ単位の検証状態。"""

    PENDING = "PENDING"
    PASSED = "PASSED"
    FAILED = "FAILED"
    WARNING = "WARNING"
    SKIPPED = "SKIPPED"


class ErrorKind(StrEnum):
    """検証エラーの分類。"""

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    PROPERTY_MISMATCH = "PROPERTY_MISMATCH"
    CONFIGURATION_INVALID = "CONFIGURATION_INVALID"
    UPSTREAM_API_FAILURE = "UPSTREAM_API_FAILURE"
    AUTHENTICATION_FAILURE = "AUTHENTICATION_FAILURE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NETWORK_FAILURE = "NETWORK_FAILURE"


class ValidationRule(BaseModel):
    """バリデーションルール定義（YAMLから読み込み）。"""

    name: str
    type: RuleKind
    property: str = ""
    expected: JsonValue = None
    operator: Operator | None = None
    error_message: str = ""
    severity: Severity = "error"


class RuleSet(BaseModel):
    """リソースタイプ単位のルールセット。"""

    type: str
    validation_rules: list[ValidationRule] = Field(default_factory=list)


class ResourceDefinition(BaseModel):
    """ステップで期待されるリソースの定義。"""

    type: str
    identifier: str = ""
    name: str
    required: bool = False
    validation_rules: list[str] = Field(default_factory=list)


class StepDefinition(BaseModel):
    """ハンズオンの1ステップ分の期待状態。"""

    number: int
    name: str
    description: str = ""
    resources: list[ResourceDefinition] = Field(default_factory=list)
    cloudformation_stacks: list[str] = Field(default_factory=list)
    dependencies: list[int] = Field(default_factory=list)


class ResourceResult(BaseModel):
    """リソース単位の検証結果。"""

    type: str
    id: str
    name: str
    status: ResourceStatus = ResourceStatus.NOT_FOUND
    expected: dict[str, JsonValue] = Field(default_factory=dict)
    actual: dict[str, JsonValue] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ValidationError(BaseModel):
    """ステップに紐づく検証エラー。例外ではなく報告用の値オブジェクト。"""

    kind: ErrorKind
    resource: str
    property: str = ""
    expected: JsonValue = None
    actual: JsonValue = None
    message: str
    suggestion: str = ""
    document_ref: str = ""


class ValidationWarning(BaseModel):
    """ステップに紐づく警告。"""

    resource: str
    message: str


class ValidationResult(BaseModel):
    """ステップ単位の検証結果。"""

    step_number: int
    step_name: str
    status: StepStatus = StepStatus.PENDING
    resources: list[ResourceResult] = Field(default_factory=list)
    errors: list[ValidationError] = Field(default_factory=list)
    warnings: list[ValidationWarning] = Field(default_factory=list)
    duration: float = 0.0


class ValidationSummary(BaseModel):
    """全ステップの検証結果サマリー。"""

    total_steps: int
    passed_steps: int = 0
    failed_steps: int = 0
    warning_steps: int = 0
    skipped_steps: int = 0
    results: list[ValidationResult] = Field(default_factory=list)
