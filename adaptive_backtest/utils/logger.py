"""
로깅 모듈.

[ 역할 ]
    패키지 루트 로거("adaptive_backtest")에 파일 + 콘솔 핸들러를 붙인다.
    각 모듈은 get_logger("backtest") 처럼 하위 로거를 받아 쓰므로
    핸들러 설정은 진입점에서 한 번만 하면 된다.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/adaptive_backtest_20240601.log)

[ 하위 로거 ]
    adaptive_backtest.backtest   - 시뮬레이션 시작/종료, 체결 (DEBUG)
    adaptive_backtest.signals    - 시그널 사전계산, 제외된 종목
    adaptive_backtest.optimizer  - 그리드 탐색 진행, 선택된 가중치
    adaptive_backtest.data       - 데이터 정규화/필터링

[ 호출하는 곳 ]
    - run_backtest.py에서 setup_logger() 호출
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

ROOT_LOGGER = "adaptive_backtest"


def get_logger(component: str) -> logging.Logger:
    """패키지 하위 로거. 예: get_logger("backtest") → adaptive_backtest.backtest"""
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def setup_logger(
    name: str = ROOT_LOGGER,
    level: str = "INFO",
    log_dir: str | None = "logs",
    console: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록. log_dir=None이면 파일 로그 생략."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # 파일 핸들러
    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y%m%d")
        file_handler = logging.FileHandler(
            log_path / f"{name}_{today}.log",
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # 콘솔 핸들러
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
