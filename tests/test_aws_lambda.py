import asyncio
import json
from typing import Dict, List

import pytest

from lambdoku import aws_lambda
from lambdoku.aws_lambda import FunctionVersion, LambdaFunction
from lambdoku.config import LambdokuConfig
from lambdoku.subprocess_utils import RunResult


def _install_fake_aws(monkeypatch: pytest.MonkeyPatch, responses: Dict[str, str]) -> List[list]:
    """
    `aws lambda <subcommand>` 의 subcommand 별로 고정 stdout 을 돌려주는 가짜 run_command.
    """
    calls: List[list] = []

    async def fake_run(cmd, *, timeout=None):  # noqa: ANN001, ARG001
        calls.append(list(cmd))
        return RunResult(returncode=0, stdout=responses.get(cmd[2], ""), stderr="")

    monkeypatch.setattr(aws_lambda, "run_command", fake_run)
    return calls


def _fn(**cfg_kwargs) -> LambdaFunction:  # noqa: ANN003
    return LambdaFunction("orders-api", LambdokuConfig(**cfg_kwargs))


def test_get_env_variables_parses_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_fake_aws(
        monkeypatch,
        {"get-function-configuration": json.dumps({"Environment": {"Variables": {"A": "1"}}})},
    )

    env = asyncio.run(_fn(aws_profile="deploy").get_env_variables("7"))

    assert env == {"A": "1"}
    cmd = calls[0]
    assert cmd[:3] == ["aws", "lambda", "get-function-configuration"]
    assert cmd[cmd.index("--qualifier") + 1] == "7"
    assert cmd[cmd.index("--profile") + 1] == "deploy"
    assert cmd[cmd.index("--output") + 1] == "json"


def test_get_env_variables_without_environment_is_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_aws(monkeypatch, {"get-function-configuration": json.dumps({"FunctionName": "x"})})

    assert asyncio.run(_fn().get_env_variables()) == {}


def test_set_env_variables_sends_json_and_waits(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_fake_aws(monkeypatch, {"update-function-configuration": "{}"})

    asyncio.run(_fn().set_env_variables({"A": "it's = quoted"}))

    update_cmd = calls[0]
    payload = json.loads(update_cmd[update_cmd.index("--environment") + 1])
    assert payload == {"Variables": {"A": "it's = quoted"}}
    assert calls[1][:4] == ["aws", "lambda", "wait", "function-updated"]


def test_update_code_skips_wait_when_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_fake_aws(monkeypatch, {"update-function-code": "{}"})

    asyncio.run(_fn(wait_for_updates=False).update_code("/tmp/lambdoku-x/lambdoku-temp.zip"))

    assert len(calls) == 1
    assert "fileb:///tmp/lambdoku-x/lambdoku-temp.zip" in calls[0]


def test_get_code_location(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_aws(
        monkeypatch,
        {"get-function": json.dumps({"Code": {"Location": "https://bucket.example/code.zip?sig=1"}})},
    )

    assert asyncio.run(_fn().get_code_location("3")) == "https://bucket.example/code.zip?sig=1"


def test_malformed_json_raises_runtime_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_aws(monkeypatch, {"get-function": "An error occurred (AccessDenied)"})

    with pytest.raises(RuntimeError) as excinfo:
        asyncio.run(_fn().get_code_location("3"))

    assert "AccessDenied" in str(excinfo.value)


def test_publish_version_returns_version(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_fake_aws(monkeypatch, {"publish-version": json.dumps({"Version": "12"})})

    assert asyncio.run(_fn().publish_version("Set env variables A")) == "12"
    assert calls[0][calls[0].index("--description") + 1] == "Set env variables A"


def test_published_versions_exclude_latest_and_are_newest_first(monkeypatch: pytest.MonkeyPatch) -> None:
    versions = [
        {"Version": "$LATEST", "Description": "", "LastModified": "2024-01-04"},
        {"Version": "1", "Description": "first", "LastModified": "2024-01-01"},
        {"Version": "9", "Description": "ninth", "LastModified": "2024-01-02"},
        {"Version": "10", "Description": "tenth", "LastModified": "2024-01-03"},
    ]
    _install_fake_aws(monkeypatch, {"list-versions-by-function": json.dumps({"Versions": versions})})

    published = asyncio.run(_fn().list_published_versions())

    assert [v.version for v in published] == ["10", "9", "1"]
    assert published[0] == FunctionVersion("10", "tenth", "2024-01-03")
    assert asyncio.run(_fn().get_latest_published_version()) == "10"


def test_latest_published_version_without_releases_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    versions = [{"Version": "$LATEST", "Description": "", "LastModified": "2024-01-04"}]
    _install_fake_aws(monkeypatch, {"list-versions-by-function": json.dumps({"Versions": versions})})

    with pytest.raises(RuntimeError):
        asyncio.run(_fn().get_latest_published_version())


def test_command_failure_propagates(monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_run(cmd, *, timeout=None):  # noqa: ANN001, ARG001
        raise RuntimeError("명령 실행 실패: aws lambda get-function (exit=254)")

    monkeypatch.setattr(aws_lambda, "run_command", failing_run)

    with pytest.raises(RuntimeError) as excinfo:
        asyncio.run(_fn().get_code_location("1"))

    assert "exit=254" in str(excinfo.value)


def test_sibling_shares_config() -> None:
    fn = _fn(aws_region="us-east-2")
    other = fn.sibling("orders-api-prod")

    assert other.name == "orders-api-prod"
    assert other.cfg is fn.cfg


def test_publish_version_caps_long_description(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_fake_aws(monkeypatch, {"publish-version": json.dumps({"Version": "3"})})
    description = "Set env variables " + ",".join(f"VARIABLE_{i}" for i in range(60))

    asyncio.run(_fn().publish_version(description))

    sent = calls[0][calls[0].index("--description") + 1]
    assert len(sent) == aws_lambda.MAX_DESCRIPTION_LENGTH
    assert sent.startswith("Set env variables VARIABLE_0,VARIABLE_1")
