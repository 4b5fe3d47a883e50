"""stepguardのカスタム例外クラス。"""

from stepguard.models.validation import ErrorKind


class StepguardError(Exception):
    """stepguardの基底例外クラス。"""


class StepConfigError(StepguardError):
    """ステップ定義の読み込みに失敗した場合の基底例外。"""

    def __init__(self, step_number: int, message: str) -> None:
        super().__init__(message)
        self.step_number = step_number


class StepConfigNotFoundError(StepConfigError):
    """ステップ定義ファイルが見つからない場合の例外。"""

    def __init__(self, step_number: int) -> None:
        super().__init__(step_number, f"Step config not found: step{step_number}")


class StepConfigInvalidError(StepConfigError):
    """ステップ定義ファイルの内容が不正な場合の例外。"""

    def __init__(self, step_number: int, detail: str) -> None:
        super().__init__(step_number, f"Invalid step config for step{step_number}: {detail}")
        self.detail = detail


class RuleSetLoadError(StepguardError):
    """リソースタイプのルールセットを読み込めない場合の例外。"""

    def __init__(self, resource_type: str, detail: str) -> None:
        super().__init__(f"Failed to load rule set for {resource_type}: {detail}")
        self.resource_type = resource_type
        self.detail = detail


class CommandNotAllowedError(StepguardError):
    """ホワイトリスト外のAWS CLIコマンド実行を拒否する例外。"""

    def __init__(self, command: str) -> None:
        super().__init__(f"Command not allowed: {command}")
        self.command = command


class AwsCliError(StepguardError):
    """AWS CLI実行エラー。"""

    def __init__(self, message: str, kind: ErrorKind, stderr: str, exit_code: int) -> None:
        super().__init__(message)
        self.kind = kind
        self.stderr = stderr
        self.exit_code = exit_code


class AwsApiError(StepguardError):
    """AWS API（boto3）呼び出しエラー。"""

    def __init__(self, message: str, kind: ErrorKind, code: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.code = code
