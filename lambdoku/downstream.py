"""
downstream
----------

Lambda 환경변수 DOWNSTREAM_LAMBDAS 에 ';' 로 이어 붙여 저장하는
downstream 함수 목록의 인코딩/디코딩.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional


DOWNSTREAM_KEY = "DOWNSTREAM_LAMBDAS"
SEPARATOR = ";"


def decode_downstream(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return value.split(SEPARATOR)


def encode_downstream(names: Iterable[str]) -> str:
    return SEPARATOR.join(names)


def downstream_from_config(config: Mapping[str, str]) -> List[str]:
    return decode_downstream(config.get(DOWNSTREAM_KEY))


def with_downstream(config: Mapping[str, str], names: List[str]) -> Dict[str, str]:
    """
    config 사본에 downstream 목록을 반영해서 반환한다. 목록이 비면 키를 지운다.
    """
    updated = dict(config)
    if names:
        updated[DOWNSTREAM_KEY] = encode_downstream(names)
    else:
        updated.pop(DOWNSTREAM_KEY, None)
    return updated


def add_downstream(names: List[str], name: str) -> List[str]:
    name = name.strip()
    if not name:
        raise ValueError("downstream Lambda 이름이 비어 있습니다.")
    if SEPARATOR in name:
        raise ValueError(f"downstream Lambda 이름에 '{SEPARATOR}' 를 쓸 수 없습니다: {name}")
    if name in names:
        raise ValueError(f"이미 등록된 downstream 입니다: {name}")
    return [*names, name]


def remove_downstream(names: List[str], name: str) -> List[str]:
    name = name.strip()
    if name not in names:
        raise ValueError(f"등록되지 않은 downstream 입니다: {name}")
    return [n for n in names if n != name]


def distinct_downstream(names: Iterable[str]) -> List[str]:
    """
    빈 이름과 중복을 제거한다. 처음 나온 순서는 유지한다.
    """
    seen: List[str] = []
    for name in names:
        name = name.strip()
        if name and name not in seen:
            seen.append(name)
    return seen
