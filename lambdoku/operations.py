from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from . import artifacts
from . import downstream as ds
from .aws_lambda import FunctionVersion, LambdaFunction, LATEST_VERSION
from .logging_utils import get_logger


logger = get_logger(__name__)


def parse_assignments(assignments: Iterable[str]) -> Dict[str, str]:
    """
    KEY=VALUE 형식의 인자들을 dict 로 변환한다.
    값에는 '=' 가 들어갈 수 있으므로 첫 번째 '=' 기준으로만 나눈다.
    """
    parsed: Dict[str, str] = {}
    for assignment in assignments:
        key, sep, value = assignment.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(
                f"할당 형식이 잘못되었습니다: {assignment!r} (KEY=VALUE 형식이어야 합니다)"
            )
        parsed[key] = value
    return parsed


async def show_config(fn: LambdaFunction) -> Dict[str, str]:
    return await fn.get_env_variables(LATEST_VERSION)


async def set_config(fn: LambdaFunction, assignments: Sequence[str]) -> Dict[str, str]:
    """
    기존 환경변수에 새 값을 덮어써서(merge) 반영하고 새 버전을 발행한다.
    반영된 전체 환경변수를 반환한다.
    """
    updates = parse_assignments(assignments)
    current = await fn.get_env_variables(LATEST_VERSION)
    merged = {**current, **updates}
    await fn.set_env_variables(merged)
    await fn.publish_version(f"Set env variables {','.join(updates)}")
    return merged


async def unset_config(fn: LambdaFunction, names: Sequence[str]) -> Dict[str, str]:
    """
    환경변수를 제거한다. 하나라도 존재하지 않으면 아무것도 바꾸지 않고 ValueError.
    """
    current = await fn.get_env_variables(LATEST_VERSION)
    missing = [n for n in names if n not in current]
    if missing:
        raise ValueError(
            f"Lambda {fn.name} 에 설정되지 않은 환경변수입니다: {', '.join(missing)}"
        )
    to_remove = set(names)
    remaining = {k: v for k, v in current.items() if k not in to_remove}
    await fn.set_env_variables(remaining)
    await fn.publish_version(f"Unset env variables {','.join(names)}")
    return remaining


async def get_config_values(fn: LambdaFunction, names: Sequence[str]) -> Dict[str, str]:
    current = await fn.get_env_variables(LATEST_VERSION)
    values: Dict[str, str] = {}
    for name in names:
        if name not in current:
            raise ValueError(f"설정되지 않은 환경변수입니다: {name}")
        values[name] = current[name]
    return values


async def list_downstream(fn: LambdaFunction) -> List[str]:
    return ds.downstream_from_config(await fn.get_env_variables(LATEST_VERSION))


async def add_downstream(fn: LambdaFunction, name: str) -> List[str]:
    config = await fn.get_env_variables(LATEST_VERSION)
    names = ds.add_downstream(ds.downstream_from_config(config), name)
    await fn.set_env_variables(ds.with_downstream(config, names))
    await fn.publish_version(f"Added downstream {name.strip()}")
    return names


async def remove_downstream(fn: LambdaFunction, name: str) -> List[str]:
    config = await fn.get_env_variables(LATEST_VERSION)
    names = ds.remove_downstream(ds.downstream_from_config(config), name)
    await fn.set_env_variables(ds.with_downstream(config, names))
    await fn.publish_version(f"Removed downstream {name.strip()}")
    return names


async def list_releases(fn: LambdaFunction) -> List[FunctionVersion]:
    return await fn.list_published_versions()


async def rollback(fn: LambdaFunction, version: str, *, download_timeout: float = 300.0) -> None:
    """
    지정한 버전의 코드와 환경변수를 $LATEST 에 되돌리고 새 버전으로 발행한다.
    """
    code_location = await fn.get_code_location(version)
    code_path = await artifacts.download_code(code_location, timeout=download_timeout)
    await fn.update_code(code_path)
    config = await fn.get_env_variables(version)
    await fn.set_env_variables(config)
    await fn.publish_version(f"Rolling back to version {version}")


@dataclass
class PromotionResult:
    source: str
    version: Optional[str] = None
    promoted: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def summary(self) -> str:
        lines: List[str] = [f"# Promote {self.source} (version {self.version})"]
        if not self.promoted and not self.failed:
            lines.append("- downstream 이 없습니다.")
            return "\n".join(lines)
        if self.promoted:
            lines.append("## Promoted")
            lines.extend(f"- {name}" for name in self.promoted)
        if self.failed:
            lines.append("## Failed")
            lines.extend(f"- {name}: {err}" for name, err in self.failed.items())
        return "\n".join(lines)


async def _promote_one(target: LambdaFunction, code_path: str, description: str) -> None:
    await target.update_code(code_path)
    await target.publish_version(description)


async def promote(
    fn: LambdaFunction,
    *,
    download_timeout: float = 300.0,
) -> PromotionResult:
    """
    가장 최근에 발행된 버전의 코드를 모든 downstream 에 올리고 각각 새 버전을 발행한다.

    downstream 들은 동시에 처리되며, 일부가 실패해도 나머지는 되돌리지 않는다.
    """
    version = await fn.get_latest_published_version()
    result = PromotionResult(source=fn.name, version=version)

    # 손으로 고친 값에 빈 이름이나 중복이 있어도 함수당 한 번만 배포한다.
    names = ds.distinct_downstream(ds.downstream_from_config(await fn.get_env_variables(version)))
    if not names:
        logger.warning("downstream 이 없어 promote 할 대상이 없습니다: %s", fn.name)
        return result

    code_location = await fn.get_code_location(version)
    code_path = await artifacts.download_code(code_location, timeout=download_timeout)

    logger.info("promote 대상: %s", names)
    description = f"Promoting code from {fn.name} version {version}"
    targets = [fn.sibling(name) for name in names]
    outcomes = await asyncio.gather(
        *(_promote_one(target, code_path, description) for target in targets),
        return_exceptions=True,
    )

    for target, outcome in zip(targets, outcomes):
        if isinstance(outcome, BaseException):
            logger.error("downstream promote 실패: %s (%s)", target.name, outcome)
            result.failed[target.name] = str(outcome)
        else:
            result.promoted.append(target.name)

    return result
