"""
artifacts
---------

get-function 이 돌려주는 pre-signed URL 에서 Lambda 코드 zip 을
임시 파일로 내려받는 모듈.
"""

from __future__ import annotations

import os
import tempfile
from typing import Optional

import httpx

from .logging_utils import get_logger


logger = get_logger(__name__)

TEMP_DIR_PREFIX = "lambdoku-"
TEMP_FILE_NAME = "lambdoku-temp.zip"


async def download_code(
    code_location: str,
    *,
    timeout: float = 300.0,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    코드 zip 을 새 임시 디렉토리에 저장하고 그 경로를 반환한다.

    pre-signed URL 은 한 번만 쓰이므로 재시도하지 않으며,
    내려받은 파일은 프로세스 종료 후에도 지우지 않는다.
    """
    temp_dir = tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX)
    target = os.path.join(temp_dir, TEMP_FILE_NAME)

    # URL 에 서명 쿼리가 붙어 있으므로 로그에는 경로까지만 남긴다.
    logger.info("Lambda 코드 다운로드: %s -> %s", code_location.split("?", 1)[0], target)

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    try:
        async with http.stream("GET", code_location) as response:
            if response.status_code >= 400:
                await response.aread()
                raise RuntimeError(
                    f"Lambda 코드 다운로드 실패 (status={response.status_code}): {response.text[:500]}"
                )
            with open(target, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)
    except httpx.HTTPError as e:
        raise RuntimeError(f"Lambda 코드 다운로드 실패: {e}") from e
    finally:
        if owns_client:
            await http.aclose()

    logger.debug("다운로드 완료: %s (%d bytes)", target, os.path.getsize(target))
    return target
