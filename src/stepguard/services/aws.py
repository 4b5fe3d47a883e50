"""AWSリソースの実状態を取得するサービス。"""

import asyncio
import json
import logging
import shlex
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ProfileNotFound,
    ReadTimeoutError,
)

from stepguard.models.aws import CLIResult
from stepguard.models.errors import AwsApiError, AwsCliError, CommandNotAllowedError
from stepguard.models.validation import ErrorKind
from stepguard.services.registry import CheckRegistry

logger = logging.getLogger(__name__)

# run_aws_cliで許可されるサービスコマンドのホワイトリスト
ALLOWED_AWS_SERVICES: frozenset[str] = frozenset(
    {
        "cloudcontrol",
        "cloudformation",
        "ec2",
        "ecr",
        "ecs",
        "elbv2",
        "iam",
        "rds",
        "sts",
    }
)

# 参照系の操作のみ許可する
_READ_ONLY_PREFIXES = ("describe-", "list-", "get-")

_AUTH_ERROR_CODES = frozenset(
    {
        "AuthFailure",
        "ExpiredToken",
        "ExpiredTokenException",
        "InvalidAccessKeyId",
        "InvalidClientTokenId",
        "SignatureDoesNotMatch",
        "UnrecognizedClientException",
    }
)
_PERMISSION_ERROR_CODES = frozenset({"AccessDenied", "AccessDeniedException", "UnauthorizedOperation"})

# CLIのstderrに認証情報未設定のエラーが含まれるか
_CLI_AUTH_MARKERS = (
    "Unable to locate credentials",
    "ExpiredToken",
    "InvalidClientTokenId",
    "The config profile",
)

_AWS_CONFIG_HINT = (
    "AWS CLI is not configured. To set up:\n"
    "1. Run 'aws configure' (or 'aws configure sso') to create ~/.aws/config\n"
    "2. Or export AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY / AWS_SESSION_TOKEN\n"
    "See: https://docs.aws.amazon.com/cli/latest/userguide/cli-configure-files.html"
)

_CLIENT_CONFIG = Config(retries={"max_attempts": 3, "mode": "standard"})


def classify_client_error(error: ClientError) -> ErrorKind:
    """ClientErrorのエラーコードからエラー分類を判定する。"""
    code = error.response.get("Error", {}).get("Code", "")
    message = error.response.get("Error", {}).get("Message", "")
    if code in _AUTH_ERROR_CODES:
        return ErrorKind.AUTHENTICATION_FAILURE
    if code in _PERMISSION_ERROR_CODES:
        return ErrorKind.PERMISSION_DENIED
    if "NotFound" in code:
        return ErrorKind.RESOURCE_NOT_FOUND
    # CloudFormationは存在しないスタックをValidationErrorで返す
    if code == "ValidationError" and "does not exist" in message:
        return ErrorKind.RESOURCE_NOT_FOUND
    # ECSは存在しないタスク定義をClientExceptionで返す
    if code == "ClientException" and "Unable to describe task definition" in message:
        return ErrorKind.RESOURCE_NOT_FOUND
    return ErrorKind.UPSTREAM_API_FAILURE


def classify_sdk_error(error: Exception) -> ErrorKind:
    """boto3/botocoreの例外からエラー分類を判定する。"""
    if isinstance(error, ClientError):
        return classify_client_error(error)
    if isinstance(error, NoCredentialsError | PartialCredentialsError | ProfileNotFound):
        return ErrorKind.AUTHENTICATION_FAILURE
    if isinstance(error, EndpointConnectionError | ConnectTimeoutError | ReadTimeoutError):
        return ErrorKind.NETWORK_FAILURE
    return ErrorKind.UPSTREAM_API_FAILURE


def _name_filter(name: str) -> list[dict[str, Any]]:
    return [{"Name": "tag:Name", "Values": [name]}]


def _name_tag(tags: list[dict[str, Any]] | None) -> str:
    for tag in tags or []:
        if tag.get("Key") == "Name":
            return str(tag.get("Value", ""))
    return ""


class AwsStateService:
    """boto3でリソースの存在とプロパティを取得する。

    リソースタイプ別の確認関数を CheckRegistry に登録して使う。
    個別実装の無いタイプは Cloud Control API の get_resource で確認する。
    調査用の run_aws_cli だけは aws CLI をサブプロセスで実行する。
    """

    def __init__(self, region: str = "", profile: str = "") -> None:
        self._region = region
        self._profile = profile
        # boto3セッションとクライアント（遅延初期化）
        self._session: boto3.session.Session | None = None
        self._clients: dict[str, Any] = {}

    def register_checks(self, registry: CheckRegistry) -> None:
        """リソースタイプ別の確認関数をレジストリに登録する。"""
        registry.register("AWS::EC2::VPC", self.check_vpc)
        registry.register("AWS::EC2::Subnet", self.check_subnet)
        registry.register("AWS::EC2::SecurityGroup", self.check_security_group)
        registry.register("AWS::EC2::InternetGateway", self.check_internet_gateway)
        registry.register("AWS::EC2::VPCEndpoint", self.check_vpc_endpoint)
        registry.register("AWS::ECR::Repository", self.check_ecr_repository)
        registry.register("AWS::ECS::Cluster", self.check_ecs_cluster)
        registry.register("AWS::ECS::TaskDefinition", self.check_task_definition)
        registry.register("AWS::ECS::Service", self.check_ecs_service)
        registry.register("AWS::ElasticLoadBalancingV2::LoadBalancer", self.check_load_balancer)
        registry.register("AWS::ElasticLoadBalancingV2::TargetGroup", self.check_target_group)
        registry.set_fallback(self.check_cloud_control_resource)

    def _get_client(self, service: str) -> Any:
        """サービス別のboto3クライアントを遅延初期化して返す。"""
        if service not in self._clients:
            if self._session is None:
                self._session = boto3.session.Session(
                    region_name=self._region or None,
                    profile_name=self._profile or None,
                )
            self._clients[service] = self._session.client(service, config=_CLIENT_CONFIG)
        return self._clients[service]

    async def call(self, service: str, operation: str, **params: Any) -> dict[str, Any]:
        """boto3クライアントの操作をスレッドで実行し、レスポンスを返す。

        Args:
            service: boto3のサービス名（例: "ec2"）。
            operation: クライアントのメソッド名（例: "describe_vpcs"）。
            **params: 操作のパラメータ。

        Raises:
            AwsApiError: API呼び出しが失敗した場合。
        """
        logger.debug("Calling %s.%s %s", service, operation, params)
        try:
            method = getattr(self._get_client(service), operation)
            response = await asyncio.to_thread(method, **params)
        except (ClientError, BotoCoreError) as e:
            code = e.response.get("Error", {}).get("Code", "") if isinstance(e, ClientError) else type(e).__name__
            raise AwsApiError(f"{service}.{operation} failed: {e}", classify_sdk_error(e), code) from e
        return dict(response)

    async def _call_or_none(self, service: str, operation: str, **params: Any) -> dict[str, Any] | None:
        """見つからない系のエラーをNoneに変換してcallする。それ以外のエラーは送出する。"""
        try:
            return await self.call(service, operation, **params)
        except AwsApiError as e:
            if e.kind == ErrorKind.RESOURCE_NOT_FOUND:
                return None
            raise

    async def _run_subprocess(self, args: list[str]) -> tuple[int, str, str]:
        """サブプロセスを非同期で実行し、結果を返す。

        キャンセルされた場合はプロセスを終了・回収してから再送出する。

        Returns:
            (exit_code, stdout, stderr) のタプル。
        """
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout_bytes, stderr_bytes = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            await asyncio.shield(proc.wait())
            raise
        return (
            proc.returncode or 0,
            stdout_bytes.decode("utf-8", errors="replace"),
            stderr_bytes.decode("utf-8", errors="replace"),
        )

    def _validate_aws_command(self, command: str) -> list[str]:
        """AWS CLIコマンドをホワイトリストで検証し、引数リストを返す。

        Raises:
            CommandNotAllowedError: コマンドがホワイトリスト外の場合。
        """
        try:
            args = shlex.split(command)
        except ValueError as e:
            raise CommandNotAllowedError(command) from e

        if args and args[0] == "aws":
            args = args[1:]
        if len(args) < 2:
            raise CommandNotAllowedError(command)

        service, operation, *params = args
        if service not in ALLOWED_AWS_SERVICES or not operation.startswith(_READ_ONLY_PREFIXES):
            raise CommandNotAllowedError(command)

        base = ["aws", service, operation, *params, "--output", "json", "--no-cli-pager"]
        if self._region:
            base.extend(["--region", self._region])
        if self._profile:
            base.extend(["--profile", self._profile])
        return base

    async def run_aws_cli(self, command: str) -> CLIResult:
        """参照系のAWS CLIコマンドを実行する。

        Args:
            command: AWS CLIコマンド文字列（例: "aws ec2 describe-vpcs"）。

        Returns:
            CLI実行結果。

        Raises:
            CommandNotAllowedError: コマンドがホワイトリスト外の場合。
            AwsCliError: aws CLIが実行できない場合。
        """
        args = self._validate_aws_command(command)
        try:
            exit_code, stdout, stderr = await self._run_subprocess(args)
        except OSError as e:
            raise AwsCliError(f"aws CLI could not be executed: {e}", ErrorKind.UPSTREAM_API_FAILURE, str(e), 127) from e

        setup_hint: str | None = None
        if exit_code != 0 and any(marker in stderr for marker in _CLI_AUTH_MARKERS):
            setup_hint = _AWS_CONFIG_HINT

        return CLIResult(
            success=exit_code == 0,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            setup_hint=setup_hint,
        )

    async def stack_exists(self, stack_name: str) -> bool:
        """CloudFormationスタックが存在するかを返す。

        スタックが無い場合に加え、確認自体に失敗した場合もFalseを返す。
        """
        try:
            data = await self.call("cloudformation", "describe_stacks", StackName=stack_name)
        except AwsApiError as e:
            if e.kind != ErrorKind.RESOURCE_NOT_FOUND:
                logger.warning("Failed to describe stack %s: %s", stack_name, e)
            return False
        return bool(data.get("Stacks"))

    async def check_vpc(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self.call("ec2", "describe_vpcs", Filters=_name_filter(name))
        vpcs = data.get("Vpcs") or []
        if not vpcs:
            return False, {}
        vpc = vpcs[0]
        return True, {
            "VpcId": vpc.get("VpcId"),
            "CidrBlock": vpc.get("CidrBlock"),
            "State": vpc.get("State"),
        }

    async def check_subnet(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self.call("ec2", "describe_subnets", Filters=_name_filter(name))
        subnets = data.get("Subnets") or []
        if not subnets:
            return False, {}
        subnet = subnets[0]
        return True, {
            "SubnetId": subnet.get("SubnetId"),
            "CidrBlock": subnet.get("CidrBlock"),
            "AvailabilityZone": subnet.get("AvailabilityZone"),
            "VpcId": subnet.get("VpcId"),
        }

    async def check_security_group(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self.call("ec2", "describe_security_groups", Filters=_name_filter(name))
        groups = data.get("SecurityGroups") or []
        if not groups:
            return False, {}
        group = groups[0]

        ingress_rules: list[dict[str, Any]] = []
        for permission in group.get("IpPermissions") or []:
            rule: dict[str, Any] = {"IpProtocol": permission.get("IpProtocol")}
            if permission.get("FromPort") is not None:
                rule["FromPort"] = permission["FromPort"]
            if permission.get("ToPort") is not None:
                rule["ToPort"] = permission["ToPort"]

            cidrs = [r["CidrIp"] for r in permission.get("IpRanges") or [] if r.get("CidrIp")]
            if cidrs:
                rule["CidrBlocks"] = cidrs

            pairs = [p["GroupId"] for p in permission.get("UserIdGroupPairs") or [] if p.get("GroupId")]
            if pairs:
                rule["SourceSecurityGroups"] = pairs
                names = [n for n in [await self._security_group_name(g) for g in pairs] if n]
                if names:
                    rule["SourceSecurityGroupNames"] = names

            ingress_rules.append(rule)

        return True, {
            "GroupId": group.get("GroupId"),
            "GroupName": group.get("GroupName"),
            "VpcId": group.get("VpcId"),
            "IngressRules": ingress_rules,
        }

    async def _security_group_name(self, group_id: str) -> str:
        """セキュリティグループIDからNameタグを取得する。取得できなければ空文字。"""
        try:
            data = await self.call("ec2", "describe_security_groups", GroupIds=[group_id])
        except AwsApiError as e:
            logger.debug("Could not resolve name of %s: %s", group_id, e)
            return ""
        groups = data.get("SecurityGroups") or []
        return _name_tag(groups[0].get("Tags")) if groups else ""

    async def check_internet_gateway(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self.call("ec2", "describe_internet_gateways", Filters=_name_filter(name))
        gateways = data.get("InternetGateways") or []
        if not gateways:
            return False, {}
        gateway = gateways[0]
        props: dict[str, Any] = {"InternetGatewayId": gateway.get("InternetGatewayId")}
        attachments = gateway.get("Attachments") or []
        if attachments and attachments[0].get("VpcId"):
            props["AttachedVpcId"] = attachments[0]["VpcId"]
        return True, props

    async def check_vpc_endpoint(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self.call("ec2", "describe_vpc_endpoints", Filters=_name_filter(name))
        endpoints = data.get("VpcEndpoints") or []
        if not endpoints:
            return False, {}
        endpoint = endpoints[0]
        return True, {
            "VpcEndpointId": endpoint.get("VpcEndpointId"),
            "ServiceName": endpoint.get("ServiceName"),
            "VpcId": endpoint.get("VpcId"),
        }

    async def check_ecr_repository(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self._call_or_none("ecr", "describe_repositories", repositoryNames=[name])
        repositories = (data or {}).get("repositories") or []
        if not repositories:
            return False, {}
        repo = repositories[0]
        props: dict[str, Any] = {
            "RepositoryName": repo.get("repositoryName"),
            "RepositoryUri": repo.get("repositoryUri"),
            "ImageTagMutability": repo.get("imageTagMutability"),
        }
        encryption = repo.get("encryptionConfiguration")
        if encryption:
            props["EncryptionType"] = encryption.get("encryptionType")
        return True, props

    async def check_ecs_cluster(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self.call("ecs", "describe_clusters", clusters=[name])
        clusters = data.get("clusters") or []
        if not clusters:
            return False, {}
        cluster = clusters[0]
        return True, {
            "ClusterName": cluster.get("clusterName"),
            "Status": cluster.get("status"),
        }

    async def check_task_definition(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self._call_or_none("ecs", "describe_task_definition", taskDefinition=name)
        task_def = (data or {}).get("taskDefinition")
        if not task_def:
            return False, {}
        return True, {
            "Family": task_def.get("family"),
            "Revision": task_def.get("revision"),
            "Status": task_def.get("status"),
        }

    async def check_ecs_service(self, name: str) -> tuple[bool, dict[str, Any]]:
        """全クラスターからサービスを探す。"""
        clusters = await self.call("ecs", "list_clusters")
        for cluster_arn in clusters.get("clusterArns") or []:
            try:
                data = await self.call("ecs", "describe_services", cluster=cluster_arn, services=[name])
            except AwsApiError as e:
                logger.debug("describe_services failed for %s: %s", cluster_arn, e)
                continue
            services = data.get("services") or []
            if services and services[0].get("status") is not None:
                service = services[0]
                return True, {
                    "ServiceName": service.get("serviceName"),
                    "Status": service.get("status"),
                    "DesiredCount": service.get("desiredCount"),
                    "RunningCount": service.get("runningCount"),
                }
        return False, {}

    async def check_load_balancer(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self._call_or_none("elbv2", "describe_load_balancers", Names=[name])
        balancers = (data or {}).get("LoadBalancers") or []
        if not balancers:
            return False, {}
        balancer = balancers[0]
        return True, {
            "LoadBalancerName": balancer.get("LoadBalancerName"),
            "State": (balancer.get("State") or {}).get("Code"),
            "Type": balancer.get("Type"),
        }

    async def check_target_group(self, name: str) -> tuple[bool, dict[str, Any]]:
        data = await self._call_or_none("elbv2", "describe_target_groups", Names=[name])
        groups = (data or {}).get("TargetGroups") or []
        if not groups:
            return False, {}
        group = groups[0]
        return True, {
            "TargetGroupName": group.get("TargetGroupName"),
            "Protocol": group.get("Protocol"),
            "Port": group.get("Port"),
        }

    async def check_cloud_control_resource(self, resource_type: str, identifier: str) -> tuple[bool, dict[str, Any]]:
        """Cloud Control APIで任意タイプのリソースを取得する。"""
        data = await self._call_or_none("cloudcontrol", "get_resource", TypeName=resource_type, Identifier=identifier)
        if data is None:
            return False, {}
        raw = (data.get("ResourceDescription") or {}).get("Properties")
        if not raw:
            return True, {}
        try:
            properties = json.loads(raw)
        except json.JSONDecodeError as e:
            raise AwsApiError(
                f"Invalid resource properties for {resource_type}/{identifier}: {e}",
                ErrorKind.UPSTREAM_API_FAILURE,
            ) from e
        return True, properties if isinstance(properties, dict) else {}
