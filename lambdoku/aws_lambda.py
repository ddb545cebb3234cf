"""
aws_lambda
----------

aws CLI 의 `aws lambda ...` 호출을 감싸서
Lambda 함수의 환경변수/코드/버전을 조회·변경하는 모듈.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from textwrap import shorten
from typing import Any, Dict, List, Mapping, Optional

from .config import LambdokuConfig
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)

LATEST_VERSION = "$LATEST"

# publish-version --description 최대 길이
MAX_DESCRIPTION_LENGTH = 256


@dataclass(frozen=True)
class FunctionVersion:
    version: str
    description: str
    last_modified: str

    @property
    def is_published(self) -> bool:
        return self.version != LATEST_VERSION

    @classmethod
    def from_response(cls, raw: Mapping[str, Any]) -> "FunctionVersion":
        return cls(
            version=str(raw["Version"]),
            description=raw.get("Description") or "",
            last_modified=raw.get("LastModified") or "",
        )


def _version_sort_key(version: FunctionVersion) -> int:
    # 발행된 버전 번호는 1 부터 증가하는 정수 문자열이다.
    try:
        return int(version.version)
    except ValueError:
        return -1


def _parse_json(stdout: str, what: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(
            f"{what} 응답을 JSON 으로 해석할 수 없습니다: {shorten(stdout.strip(), width=500)!r}"
        ) from e
    if not isinstance(parsed, dict):
        raise RuntimeError(f"{what} 응답 형식이 올바르지 않습니다: {shorten(stdout.strip(), width=500)!r}")
    return parsed


class LambdaFunction:
    """
    이름으로 식별되는 단일 Lambda 함수에 대한 원격 호출 모음.

    모든 메서드는 aws CLI 를 하위 프로세스로 실행하는 코루틴이며,
    실패 시 aws CLI 의 원본 메시지를 담은 RuntimeError 를 던진다.
    """

    def __init__(self, name: str, cfg: Optional[LambdokuConfig] = None) -> None:
        self.name = name
        self.cfg = cfg or LambdokuConfig()

    def __repr__(self) -> str:
        return f"LambdaFunction({self.name!r})"

    def sibling(self, name: str) -> "LambdaFunction":
        """
        같은 설정(aws CLI, profile, region)을 쓰는 다른 함수 핸들.
        """
        return type(self)(name, self.cfg)

    async def _aws(self, *args: str) -> str:
        cmd = [self.cfg.aws_cli, "lambda", *args, *self.cfg.aws_global_args()]
        result = await run_command(cmd, timeout=self.cfg.command_timeout)
        return result.stdout

    async def get_env_variables(self, version: str = LATEST_VERSION) -> Dict[str, str]:
        logger.info("함수 설정 조회: %s (version=%s)", self.name, version)
        stdout = await self._aws(
            "get-function-configuration",
            "--function-name",
            self.name,
            "--qualifier",
            version,
        )
        parsed = _parse_json(stdout, "get-function-configuration")
        environment = parsed.get("Environment") or {}
        variables = environment.get("Variables") or {}
        return {str(k): str(v) for k, v in variables.items()}

    async def set_env_variables(self, variables: Mapping[str, str]) -> None:
        logger.info("환경변수 변경: %s (%d개)", self.name, len(variables))
        environment = json.dumps({"Variables": dict(variables)})
        await self._aws(
            "update-function-configuration",
            "--function-name",
            self.name,
            "--environment",
            environment,
        )
        await self.wait_until_updated()

    async def get_code_location(self, version: str) -> str:
        logger.info("코드 위치 조회: %s (version=%s)", self.name, version)
        stdout = await self._aws(
            "get-function",
            "--function-name",
            self.name,
            "--qualifier",
            version,
        )
        parsed = _parse_json(stdout, "get-function")
        try:
            return str(parsed["Code"]["Location"])
        except (KeyError, TypeError) as e:
            raise RuntimeError(f"get-function 응답에 Code.Location 이 없습니다: {self.name}") from e

    async def publish_version(self, description: str) -> str:
        """
        현재 $LATEST 를 새 버전으로 발행하고, 발행된 버전 번호를 반환한다.
        설명이 aws 제한보다 길면 잘라서 보낸다.
        """
        if len(description) > MAX_DESCRIPTION_LENGTH:
            description = description[: MAX_DESCRIPTION_LENGTH - 1] + "…"
        logger.info("새 버전 발행: %s (%s)", self.name, description)
        stdout = await self._aws(
            "publish-version",
            "--function-name",
            self.name,
            "--description",
            description,
        )
        parsed = _parse_json(stdout, "publish-version")
        return str(parsed.get("Version", ""))

    async def update_code(self, zip_path: str) -> None:
        logger.info("함수 코드 업데이트: %s <- %s", self.name, zip_path)
        await self._aws(
            "update-function-code",
            "--function-name",
            self.name,
            "--zip-file",
            f"fileb://{zip_path}",
        )
        await self.wait_until_updated()

    async def wait_until_updated(self) -> None:
        """
        update-* 직후 publish-version 이 진행 중인 업데이트와 충돌하지 않도록
        LastUpdateStatus 가 정리될 때까지 기다린다.
        """
        if not self.cfg.wait_for_updates:
            return
        logger.debug("함수 업데이트 완료 대기: %s", self.name)
        cmd = [
            self.cfg.aws_cli,
            "lambda",
            "wait",
            "function-updated",
            "--function-name",
            self.name,
            *self.cfg.aws_global_args(),
        ]
        await run_command(cmd, timeout=self.cfg.command_timeout)

    async def list_versions(self) -> List[FunctionVersion]:
        logger.info("버전 목록 조회: %s", self.name)
        stdout = await self._aws(
            "list-versions-by-function",
            "--function-name",
            self.name,
        )
        parsed = _parse_json(stdout, "list-versions-by-function")
        raw_versions = parsed.get("Versions")
        if not isinstance(raw_versions, list):
            raise RuntimeError(f"list-versions-by-function 응답에 Versions 가 없습니다: {self.name}")
        try:
            return [FunctionVersion.from_response(v) for v in raw_versions]
        except (KeyError, TypeError, AttributeError) as e:
            raise RuntimeError(f"list-versions-by-function 응답 형식이 올바르지 않습니다: {self.name}") from e

    async def list_published_versions(self) -> List[FunctionVersion]:
        """
        $LATEST 를 제외한 버전 목록을 최근 발행 순서(내림차순)로 반환한다.
        """
        versions = [v for v in await self.list_versions() if v.is_published]
        return sorted(versions, key=_version_sort_key, reverse=True)

    async def get_latest_published_version(self) -> str:
        published = await self.list_published_versions()
        if not published:
            raise RuntimeError(f"발행된 버전이 없습니다: {self.name} (publish-version 을 먼저 실행하세요)")
        return published[0].version
