from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values


# lambdoku 전용 설정 파일. 프로젝트의 일반 .env 는 읽지 않는다.
ENV_FILES_DEFAULT_ORDER = [".env.lambdoku"]

# 작업 디렉토리별 기본 Lambda 이름을 기록하는 파일
FUNCTION_NAME_FILE = ".lambdoku"


def read_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> Dict[str, str]:
    """
    주어진 디렉토리의 설정 파일 값을 dict 로 읽어온다. 후순위 파일이 같은 키를 덮어쓴다.

    os.environ 은 건드리지 않는다. aws CLI 하위 프로세스는 셸 환경을 그대로 물려받아야
    AWS_PROFILE / AWS_REGION 등이 프로젝트 파일 때문에 바뀌지 않는다.
    """
    values: Dict[str, str] = {}
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if not os.path.exists(path):
            continue
        for k, v in dotenv_values(dotenv_path=path).items():
            # None 은 dotenv 에서 값이 없는 키를 의미하므로 스킵
            if v is not None:
                values[k] = v
    return values


def _lookup(name: str, file_values: Mapping[str, str]) -> Optional[str]:
    # 셸 환경변수가 파일 값보다 우선한다.
    raw = os.getenv(name)
    if raw is None:
        raw = file_values.get(name)
    return raw


def _get_bool(name: str, file_values: Mapping[str, str], default: bool = False) -> bool:
    raw = _lookup(name, file_values)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y"}


def _get_positive_float(name: str, file_values: Mapping[str, str], default: float) -> float:
    raw = _lookup(name, file_values)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} 값은 숫자여야 합니다: {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} 값은 0 보다 커야 합니다: {raw!r}")
    return value


@dataclass
class LambdokuConfig:
    aws_cli: str = "aws"
    aws_profile: Optional[str] = None
    aws_region: Optional[str] = None

    # 초 단위
    command_timeout: float = 900.0
    download_timeout: float = 300.0

    # update-function-code / update-function-configuration 이후
    # 'aws lambda wait function-updated' 로 반영 완료를 기다릴지 여부
    wait_for_updates: bool = True

    @classmethod
    def from_env(cls, file_values: Optional[Mapping[str, str]] = None) -> "LambdokuConfig":
        values = file_values or {}
        return cls(
            aws_cli=_lookup("LAMBDOKU_AWS_CLI", values) or "aws",
            aws_profile=_lookup("LAMBDOKU_AWS_PROFILE", values) or None,
            aws_region=_lookup("LAMBDOKU_AWS_REGION", values) or None,
            command_timeout=_get_positive_float("LAMBDOKU_COMMAND_TIMEOUT", values, 900.0),
            download_timeout=_get_positive_float("LAMBDOKU_DOWNLOAD_TIMEOUT", values, 300.0),
            wait_for_updates=_get_bool("LAMBDOKU_WAIT_FOR_UPDATES", values, True),
        )

    def aws_global_args(self) -> List[str]:
        """
        모든 aws 호출 뒤에 붙는 공통 인자.
        """
        args = ["--output", "json"]
        if self.aws_profile:
            args += ["--profile", self.aws_profile]
        if self.aws_region:
            args += ["--region", self.aws_region]
        return args


def write_function_name(name: str, base_dir: str = ".") -> str:
    """
    .lambdoku 파일에 기본 Lambda 이름을 기록하고, 기록한 이름을 반환한다.
    """
    name = name.strip()
    if not name:
        raise ValueError("Lambda 이름이 비어 있습니다.")
    path = os.path.join(base_dir, FUNCTION_NAME_FILE)
    with open(path, "w", encoding="utf-8") as f:
        f.write(name)
    return name


def read_function_name(base_dir: str = ".") -> Optional[str]:
    path = os.path.join(base_dir, FUNCTION_NAME_FILE)
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        first_line = f.readline().strip()
    return first_line or None


def resolve_function_name(option_value: Optional[str], base_dir: str = ".") -> str:
    """
    --lambda 옵션 > .lambdoku 파일 순서로 대상 Lambda 이름을 결정한다.
    """
    if option_value and option_value.strip():
        return option_value.strip()

    name = read_function_name(base_dir)
    if name:
        return name

    raise ValueError(
        "--lambda 옵션이 없고 .lambdoku 파일도 읽을 수 없습니다. "
        "'lambdoku init <lambda 이름>' 을 먼저 실행했는지 확인하세요."
    )
