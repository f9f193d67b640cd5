"""
전략 모듈.

[ 전략 등록 방식 ]
    @register("전략이름", SignalFamily.XXX) 데코레이터를 붙이면 STRATEGY_REGISTRY에 자동 등록.
    시그널 사전계산 단계가 패밀리 단위로 전략 인스턴스를 찾아 생성한다.

[ 등록된 전략 ]
    DAILY   : momentum, mean_reversion, sentiment, technical
    REGIME  : trend_momentum, macd_trend (추세 그룹)
              bb_rsi_reversion, vwap_reversion (평균회귀 그룹)

[ 새 전략 추가 방법 ]
    1. 이 디렉토리에 새 .py 파일 생성
    2. SignalStrategy를 상속받는 클래스 작성
    3. @register("이름", 패밀리) 데코레이터 추가
    4. config.yaml의 strategy.weights에 가중치 추가 (DAILY 패밀리인 경우)
"""

from importlib import import_module
from pathlib import Path
from typing import Any

from adaptive_backtest.core.signal_types import SignalFamily
from adaptive_backtest.core.trading_strategy import SignalStrategy

# 전략 이름 → 전략 클래스 매핑
STRATEGY_REGISTRY: dict[str, type[SignalStrategy]] = {}


def register(name: str, family: SignalFamily):
    """전략 클래스를 STRATEGY_REGISTRY에 등록하는 데코레이터."""
    def decorator(cls: type[SignalStrategy]):
        cls.STRATEGY_NAME = name
        cls.FAMILY = family
        STRATEGY_REGISTRY[name] = cls
        return cls
    return decorator


def create_strategy(name: str, params: dict[str, Any] | None = None) -> SignalStrategy:
    """이름으로 전략 인스턴스를 생성.

    Args:
        name: 등록된 전략 이름 (예: "momentum", "vwap_reversion")
        params: 전략 파라미터 (각 전략의 DEFAULT_PARAMS를 오버라이드)

    Raises:
        ValueError: 등록되지 않은 전략 이름
    """
    if name not in STRATEGY_REGISTRY:
        available = ", ".join(sorted(STRATEGY_REGISTRY.keys()))
        raise ValueError(f"알 수 없는 전략: '{name}'. 사용 가능: {available}")
    return STRATEGY_REGISTRY[name](params=params)


def list_strategies(family: SignalFamily | None = None) -> list[str]:
    """등록된 전략 이름 목록 반환. family를 주면 해당 패밀리만."""
    return sorted(
        name for name, cls in STRATEGY_REGISTRY.items()
        if family is None or cls.FAMILY == family
    )


def strategies_for(
    family: SignalFamily,
    params: dict[str, dict[str, Any]] | None = None,
) -> list[SignalStrategy]:
    """패밀리의 전략 인스턴스 목록. params는 {전략이름: 파라미터} 형태."""
    params = params or {}
    return [create_strategy(name, params.get(name)) for name in list_strategies(family)]


def _auto_discover():
    """이 디렉토리의 모든 전략 모듈을 자동 임포트하여 @register가 실행되게 한다."""
    strategies_dir = Path(__file__).parent
    for py_file in strategies_dir.glob("*.py"):
        if py_file.name.startswith("_"):
            continue
        module_name = f"adaptive_backtest.strategies.{py_file.stem}"
        import_module(module_name)


# 모듈 로드 시 자동 탐색
_auto_discover()
