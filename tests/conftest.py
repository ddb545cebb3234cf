"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 lambdoku 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.

테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, repo root 를 sys.path 최상단에 고정한다.
"""

from __future__ import annotations

import os
import sys

import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


class FakeLambdaFunction:
    """
    aws CLI 대신 메모리 상태로 동작하는 LambdaFunction 대역.

    같은 registry 를 공유하는 sibling 들끼리 호출 기록(calls)이 모인다.
    """

    def __init__(self, name: str, registry: dict | None = None, cfg=None) -> None:  # noqa: ANN001
        from lambdoku.config import LambdokuConfig

        self.name = name
        self.cfg = cfg or LambdokuConfig(wait_for_updates=False)
        self.registry = registry if registry is not None else {}
        self.registry[name] = self
        self.env_by_version: dict[str, dict[str, str]] = {"$LATEST": {}}
        self.versions: list = []
        self.code_locations: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    def _record(self, op: str, *args) -> None:  # noqa: ANN002
        self.calls.append((op, *args))
        if op in self.fail_on:
            raise RuntimeError(f"{op} failed for {self.name}")

    def sibling(self, name: str) -> "FakeLambdaFunction":
        if name in self.registry:
            return self.registry[name]
        return FakeLambdaFunction(name, self.registry, self.cfg)

    def ops(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def get_env_variables(self, version: str = "$LATEST") -> dict[str, str]:
        self._record("get_env_variables", version)
        return dict(self.env_by_version[version])

    async def set_env_variables(self, variables) -> None:  # noqa: ANN001
        self._record("set_env_variables", dict(variables))
        self.env_by_version["$LATEST"] = dict(variables)

    async def get_code_location(self, version: str) -> str:
        self._record("get_code_location", version)
        return self.code_locations.get(version, f"https://code.example/{self.name}/{version}.zip")

    async def publish_version(self, description: str) -> str:
        self._record("publish_version", description)
        return str(len([c for c in self.calls if c[0] == "publish_version"]))

    async def update_code(self, zip_path: str) -> None:
        self._record("update_code", zip_path)

    async def list_published_versions(self) -> list:
        self._record("list_published_versions")
        return list(self.versions)

    async def get_latest_published_version(self) -> str:
        self._record("get_latest_published_version")
        if not self.versions:
            raise RuntimeError(f"발행된 버전이 없습니다: {self.name}")
        return self.versions[0].version


@pytest.fixture
def fake_lambda() -> FakeLambdaFunction:
    return FakeLambdaFunction("source-fn")
