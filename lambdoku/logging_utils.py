import logging
import sys


def setup_logging(verbosity: int = 0) -> None:
    # stdout 은 명령 결과 출력용으로 남겨두고 로그는 stderr 로 보낸다.
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
