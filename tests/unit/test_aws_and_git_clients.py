# ===================================================
# 📁 tests/unit/test_aws_and_git_clients.py
# ===================================================
import pytest
from botocore.exceptions import ClientError, NoCredentialsError
from unittest.mock import AsyncMock, MagicMock, patch

from interfaces.types.deployment import InfraStackStatus
from sdk.aws_clients import (
    CloudFormationStatusClient,
    LambdaDeployClient,
    map_stack_status,
    parse_artifact_ref,
    translate_boto_error,
)
from sdk.exceptions import APIError, AuthenticationError, CommandError, NotFoundError
from sdk.git_client import GitVcsClient


def client_error(code: str, message: str = "", status: int = 400, operation: str = "Op") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"HTTPStatusCode": status}}, operation)


@pytest.mark.parametrize("raw, expected", [
    ("CREATE_COMPLETE", InfraStackStatus.COMPLETE),
    ("UPDATE_COMPLETE", InfraStackStatus.COMPLETE),
    ("CREATE_IN_PROGRESS", InfraStackStatus.IN_PROGRESS),
    ("UPDATE_COMPLETE_CLEANUP_IN_PROGRESS", InfraStackStatus.IN_PROGRESS),
    ("CREATE_FAILED", InfraStackStatus.FAILED),
    ("ROLLBACK_COMPLETE", InfraStackStatus.FAILED),
    ("UPDATE_ROLLBACK_COMPLETE", InfraStackStatus.COMPLETE),
    ("UPDATE_ROLLBACK_FAILED", InfraStackStatus.FAILED),
    ("DELETE_COMPLETE", InfraStackStatus.FAILED),
])
def test_map_stack_status(raw, expected):
    assert map_stack_status(raw) == expected


@pytest.mark.asyncio
async def test_cloudformation_status_complete():
    cfn = MagicMock()
    cfn.describe_stacks.return_value = {"Stacks": [{"StackName": "api-handler-stack-212", "StackStatus": "CREATE_COMPLETE"}]}
    assert await CloudFormationStatusClient(client=cfn).get_status("api-handler-stack-212") == InfraStackStatus.COMPLETE
    cfn.describe_stacks.assert_called_once_with(StackName="api-handler-stack-212")


@pytest.mark.asyncio
async def test_cloudformation_missing_stack_is_not_found():
    cfn = MagicMock()
    cfn.describe_stacks.side_effect = client_error("ValidationError", "Stack with id api-handler-stack-212 does not exist")
    assert await CloudFormationStatusClient(client=cfn).get_status("api-handler-stack-212") == InfraStackStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_cloudformation_access_denied_is_auth_error():
    cfn = MagicMock()
    cfn.describe_stacks.side_effect = client_error("AccessDenied", "not allowed", status=403)
    with pytest.raises(AuthenticationError):
        await CloudFormationStatusClient(client=cfn).get_status("s")


@pytest.mark.asyncio
async def test_lambda_target_exists():
    lam = MagicMock()
    lam.get_function.side_effect = [
        {"Configuration": {"FunctionName": "api-handler-212", "State": "Active", "LastUpdateStatus": "Successful"}},
        client_error("ResourceNotFoundException", "Function not found", status=404),
    ]
    client = LambdaDeployClient(client=lam)
    assert await client.target_exists("api-handler-212") is True
    assert await client.target_exists("api-handler-212") is False


@pytest.mark.asyncio
async def test_lambda_update_from_s3_waits_for_update():
    lam = MagicMock()
    lam.update_function_code.return_value = {"CodeSha256": "abc="}
    await LambdaDeployClient(client=lam).update_artifact("api-handler-212", "s3://builds/api-handler-212.zip")

    lam.update_function_code.assert_called_once_with(
        FunctionName="api-handler-212", S3Bucket="builds", S3Key="api-handler-212.zip", Publish=True)
    lam.get_waiter.assert_called_once_with("function_updated_v2")
    lam.get_waiter.return_value.wait.assert_called_once_with(FunctionName="api-handler-212")


@pytest.mark.asyncio
async def test_lambda_update_from_local_zip(tmp_path):
    package = tmp_path / "handler.zip"
    package.write_bytes(b"PK\x03\x04fake")
    lam = MagicMock()
    lam.update_function_code.return_value = {}
    await LambdaDeployClient(client=lam, wait_for_update=False).update_artifact("fn", str(package))

    lam.update_function_code.assert_called_once_with(FunctionName="fn", ZipFile=b"PK\x03\x04fake", Publish=True)
    lam.get_waiter.assert_not_called()


@pytest.mark.asyncio
async def test_lambda_update_missing_zip_is_api_error(tmp_path):
    with pytest.raises(APIError):
        await LambdaDeployClient(client=MagicMock()).update_artifact("fn", str(tmp_path / "missing.zip"))


@pytest.mark.asyncio
async def test_lambda_update_not_found_is_translated():
    lam = MagicMock()
    lam.update_function_code.side_effect = client_error("ResourceNotFoundException", "gone", status=404)
    with pytest.raises(NotFoundError):
        await LambdaDeployClient(client=lam).update_artifact("fn", "s3://b/k.zip")


def test_parse_artifact_ref():
    assert parse_artifact_ref("s3://bucket/path/to/pkg.zip") == ("bucket", "path/to/pkg.zip")
    assert parse_artifact_ref("dist/pkg.zip") == (None, "dist/pkg.zip")
    with pytest.raises(ValueError):
        parse_artifact_ref("s3://bucket-only")


def test_translate_no_credentials():
    assert isinstance(translate_boto_error(NoCredentialsError(), "op"), AuthenticationError)


@pytest.mark.asyncio
async def test_git_current_branch_detached_is_none():
    vcs = GitVcsClient(repo_path="/repo")
    with patch.object(vcs, "_run_git", AsyncMock(return_value="HEAD")):
        assert await vcs.current_branch() is None


@pytest.mark.asyncio
async def test_git_discover_branch_prefers_remote_branches_containing_commit():
    vcs = GitVcsClient(repo_path="/repo")
    remote_output = "origin\norigin/HEAD -> origin/main\norigin/feature/b\norigin/feature/a\n"
    run_git = AsyncMock(side_effect=["HEAD", remote_output])
    with patch.object(vcs, "_run_git", run_git):
        assert await vcs.discover_branch("abc1234") == "feature/a"
    run_git.assert_awaited_with("branch", "-r", "--contains", "abc1234", "--format=%(refname:short)")


@pytest.mark.asyncio
async def test_git_discover_branch_uses_symbolic_ref_when_attached():
    vcs = GitVcsClient(repo_path="/repo")
    with patch.object(vcs, "_run_git", AsyncMock(return_value="feature/pr-212")):
        assert await vcs.discover_branch("abc1234") == "feature/pr-212"


@pytest.mark.asyncio
async def test_git_missing_binary_is_command_error(tmp_path):
    vcs = GitVcsClient(repo_path=str(tmp_path), git_binary="definitely-not-a-git-binary")
    with pytest.raises(CommandError):
        await vcs.current_branch()
