from __future__ import annotations

import asyncio
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Sequence

from .logging_utils import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


def _truncate(text: str, width: int = 2000) -> str:
    # 줄바꿈은 그대로 두고 길이만 자른다.
    if len(text) <= width:
        return text
    return text[: width - 1] + "…"


def _format_failure(cmd: Sequence[str], returncode: int, stdout: str, stderr: str) -> str:
    stdout = stdout.strip()
    stderr = stderr.strip()
    detail = ""
    if stderr:
        detail = "\nstderr:\n" + _truncate(stderr)
    elif stdout:
        detail = "\nstdout:\n" + _truncate(stdout)
    return f"명령 실행 실패: {' '.join(cmd)} (exit={returncode}){detail}"


async def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = 900.0,
) -> RunResult:
    """
    subprocess 실행 공통 유틸 (asyncio).

    - stdout/stderr 를 캡처하고, exit code 가 0 이 아니면 요약을 담은 RuntimeError
    - 실행 파일이 없거나 timeout 을 넘기면 역시 RuntimeError 로 래핑
    - 여러 호출을 asyncio.gather 로 동시에 돌릴 수 있다
    """
    logger.info("명령 실행: %s", " ".join(cmd))

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise RuntimeError(
            f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (aws CLI 가 설치되어 있는지 확인하세요)"
        ) from e

    try:
        raw_out, raw_err = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise RuntimeError(
            f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}"
        ) from e

    stdout = (raw_out or b"").decode("utf-8", errors="replace")
    stderr = (raw_err or b"").decode("utf-8", errors="replace")

    if stdout:
        logger.debug("명령 stdout: %s", shorten(stdout.strip(), width=2000))
    if stderr:
        logger.debug("명령 stderr: %s", shorten(stderr.strip(), width=2000))

    returncode = proc.returncode if proc.returncode is not None else -1
    if returncode != 0:
        raise RuntimeError(_format_failure(cmd, returncode, stdout, stderr))

    return RunResult(returncode=returncode, stdout=stdout, stderr=stderr)
