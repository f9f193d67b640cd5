"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    전략 가중치, 시뮬레이션 파라미터, 워크포워드 최적화 파라미터, 로깅 설정을 통합 관리.
    시뮬레이션 시작 전에 validate()로 범위를 검사하며, 잘못된 값은 ConfigError.

[ 설정 파일 구조 (config.yaml) ]
    strategy:         → StrategyConfig (모드, 종목, 가중치, 전략별 파라미터)
    backtest:         → BacktestConfig (포트폴리오 시뮬레이션 파라미터)
    optimizer:        → OptimizerConfig (학습/검증 구간, 그리드 설정)
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

[ 모드별 기본값 ]
    backtest.mode가 "regime"이면 BacktestConfig.regime() 프리셋 위에 파일 값을 덮어쓴다.
    (일봉: 종목당 12%, 최대 50종목 / 레짐: 종목당 7%, 최대 15종목, ATR 손절, 5bp 비용)

[ 호출하는 곳 ]
    - run_backtest.py에서 Config.from_yaml()로 로드
    - backtest/engine.py, optimization/walk_forward.py가 생성 시 validate() 호출
    - analysis/combiner.py가 validate_weights() 사용
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import pandas as pd
import yaml

from adaptive_backtest.core.signal_types import Regime, SignalFamily

WEIGHT_SUM_TOLERANCE = 0.01


class ConfigError(ValueError):
    """설정값이 허용 범위를 벗어남. 시뮬레이션 시작 전에 발생한다."""


def validate_weights(weights: dict[str, float], tolerance: float = WEIGHT_SUM_TOLERANCE) -> None:
    """가중치 벡터 검사: 각 값 0~1, 합계 1 ± tolerance."""
    if not weights:
        raise ConfigError("가중치가 비어 있습니다.")
    for name, w in weights.items():
        if not 0.0 <= w <= 1.0:
            raise ConfigError(f"가중치 범위 오류: {name}={w} (0~1 이어야 함)")
    total = sum(weights.values())
    if abs(total - 1.0) > tolerance:
        raise ConfigError(f"가중치 합계가 1이 아닙니다: {total:.4f}")


def parse_timestamp(value: str | None) -> pd.Timestamp | None:
    if value is None or value == "":
        return None
    try:
        return pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"날짜 형식 오류: {value!r}") from e


def _pick(cls, data: dict[str, Any]) -> dict[str, Any]:
    """dataclass 필드에 해당하는 키만 남긴다."""
    return {k: v for k, v in data.items() if k in cls.__dataclass_fields__}


@dataclass
class StrategyConfig:
    """전략 설정. config.yaml의 strategy 섹션에 대응.

    weights / regime_weights를 비워 두면 analysis/combiner.py의 기본값을 쓴다.
    params는 {전략이름: {파라미터: 값}} 형태로 각 전략의 DEFAULT_PARAMS를 오버라이드.
    """
    tickers: list[str] = field(default_factory=list)
    weights: dict[str, float] = field(default_factory=dict)
    regime_weights: dict[str, dict[str, float]] = field(default_factory=dict)
    params: dict[str, dict[str, Any]] = field(default_factory=dict)

    def regime_table(self) -> dict[Regime, dict[str, float]] | None:
        """regime_weights를 Regime 키 표로 변환. 비어 있으면 None."""
        if not self.regime_weights:
            return None
        table = {}
        for key, pair in self.regime_weights.items():
            try:
                regime = Regime(key)
            except ValueError as e:
                raise ConfigError(f"알 수 없는 레짐: {key}") from e
            table[regime] = {"trend": float(pair["trend"]), "reversion": float(pair["reversion"])}
        return table

    def validate(self) -> None:
        if self.weights:
            from adaptive_backtest.strategies import list_strategies

            unknown = sorted(set(self.weights) - set(list_strategies(SignalFamily.DAILY)))
            if unknown:
                raise ConfigError(f"알 수 없는 전략 가중치: {unknown}")
            validate_weights(self.weights)
        table = self.regime_table() or {}
        for regime, pair in table.items():
            validate_weights(pair)
        if table and Regime.UNKNOWN not in table:
            raise ConfigError("regime_weights에는 UNKNOWN 항목이 필요합니다.")


@dataclass
class BacktestConfig:
    """포트폴리오 시뮬레이션 설정. config.yaml의 backtest 섹션에 대응.

    기본값은 일봉(DAILY) 모드 기준. 레짐 모드는 regime() 프리셋 사용.
    stop_loss / profit_take는 % 단위 (-2 → -2%).
    """
    mode: str = "daily"
    start_date: str | None = None
    end_date: str | None = None
    initial_capital: float = 10_000
    max_position_size: float = 0.12       # 종목당 최대 비중 (총자산 대비)
    max_positions: int = 50
    min_trade_value: float = 15
    target_cash_ratio: float = 0.0        # 매수/교체 시 남겨둘 현금 비중
    buy_threshold: float = 0.02
    weak_signal_sell: float = 0.02
    stop_loss: float = -2.0
    profit_take: float = 2.0
    transaction_cost_bps: float = 0.0     # 체결금액 대비 편도 비용 (bp)
    risk_per_trade: float = 0.01
    atr_stop_multiplier: float = 2.0
    atr_profit1_multiplier: float = 3.0
    atr_profit2_multiplier: float = 5.0
    max_new_positions_per_cycle: int = 3
    min_hold_bars: int = 0
    max_buy_candidates: int = 50
    max_rotations: int = 3
    trade_interval_bars: int = 12         # 레짐 모드: 세션 내 N봉마다 1틱
    min_intraday_bars: int = 12
    min_session_bars: int = 3
    intraday_lookback: int = 80
    atr_period: int = 14
    warmup_bars: int = 50                 # 일봉 모드: 이보다 짧은 이력의 종목은 시그널 없음
    benchmark_symbol: str = "SPY"
    risk_free_rate: float = 0.05

    @property
    def family(self) -> SignalFamily:
        return SignalFamily(self.mode)

    @classmethod
    def daily(cls, **overrides: Any) -> "BacktestConfig":
        """일봉 4전략 고정 가중치 모드 프리셋."""
        return cls(**{"mode": "daily", **overrides})

    @classmethod
    def regime(cls, **overrides: Any) -> "BacktestConfig":
        """레짐 적응형 분봉 모드 프리셋."""
        preset = {
            "mode": "regime",
            "max_position_size": 0.07,
            "max_positions": 15,
            "target_cash_ratio": 0.05,
            "buy_threshold": 0.35,
            "min_hold_bars": 24,
            "transaction_cost_bps": 5.0,
        }
        return cls(**{**preset, **overrides})

    @property
    def fee_rate(self) -> float:
        return self.transaction_cost_bps / 10_000

    def validate(self) -> None:
        """범위 검사. 실패 시 ConfigError."""
        if self.mode not in ("daily", "regime"):
            raise ConfigError(f"알 수 없는 모드: {self.mode}")
        if self.initial_capital <= 0:
            raise ConfigError("initial_capital은 0보다 커야 합니다.")
        if not 0 < self.max_position_size <= 1:
            raise ConfigError(f"max_position_size 범위 오류: {self.max_position_size}")
        if self.max_positions < 1:
            raise ConfigError("max_positions는 1 이상이어야 합니다.")
        if self.min_trade_value < 0:
            raise ConfigError("min_trade_value는 음수일 수 없습니다.")
        if not 0 <= self.target_cash_ratio < 1:
            raise ConfigError(f"target_cash_ratio 범위 오류: {self.target_cash_ratio}")
        if self.transaction_cost_bps < 0:
            raise ConfigError("transaction_cost_bps는 음수일 수 없습니다.")
        if self.stop_loss >= 0:
            raise ConfigError(f"stop_loss는 음수(%)여야 합니다: {self.stop_loss}")
        if self.profit_take <= 0:
            raise ConfigError(f"profit_take는 양수(%)여야 합니다: {self.profit_take}")
        if not 0 < self.risk_per_trade <= 1:
            raise ConfigError(f"risk_per_trade 범위 오류: {self.risk_per_trade}")
        if min(self.atr_stop_multiplier, self.atr_profit1_multiplier, self.atr_profit2_multiplier) <= 0:
            raise ConfigError("ATR 배수는 양수여야 합니다.")
        if self.atr_profit1_multiplier > self.atr_profit2_multiplier:
            raise ConfigError("atr_profit1_multiplier는 atr_profit2_multiplier 이하여야 합니다.")
        for name in ("max_new_positions_per_cycle", "max_buy_candidates", "trade_interval_bars", "atr_period"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name}는 1 이상이어야 합니다.")
        for name in ("min_hold_bars", "max_rotations", "warmup_bars", "min_intraday_bars", "min_session_bars"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name}는 음수일 수 없습니다.")

        start = parse_timestamp(self.start_date)
        end = parse_timestamp(self.end_date)
        if start is not None and end is not None and start > end:
            raise ConfigError(f"start_date({self.start_date})가 end_date({self.end_date})보다 늦습니다.")


@dataclass
class OptimizerConfig:
    """워크포워드 최적화 설정. config.yaml의 optimizer 섹션에 대응.

    weight_names의 마지막 항목은 1 - (나머지 합)으로 결정된다.
    """
    train_start: str | None = None
    train_end: str | None = None
    test_start: str | None = None
    test_end: str | None = None
    weight_names: list[str] = field(
        default_factory=lambda: ["momentum", "mean_reversion", "sentiment", "technical"]
    )
    step: float = 0.05
    min_weight: float = 0.0
    max_weight: float = 0.70
    top_n: int = 10
    return_tolerance: float = 0.01   # 총수익률(%p) 차이가 이 이내면 샤프로 순위 결정
    n_jobs: int = 1

    def ranges(self) -> tuple[tuple[pd.Timestamp, pd.Timestamp], tuple[pd.Timestamp, pd.Timestamp]]:
        """검증된 (학습 구간, 검증 구간)."""
        bounds = [parse_timestamp(v) for v in (self.train_start, self.train_end, self.test_start, self.test_end)]
        if any(b is None for b in bounds):
            raise ConfigError("train_start/train_end/test_start/test_end가 모두 필요합니다.")
        train_start, train_end, test_start, test_end = bounds
        if train_start > train_end or test_start > test_end:
            raise ConfigError("구간 시작일이 종료일보다 늦습니다.")
        if train_end >= test_start:
            raise ConfigError(
                f"학습 구간({self.train_start}~{self.train_end})과 "
                f"검증 구간({self.test_start}~{self.test_end})이 겹치거나 순서가 뒤집혔습니다."
            )
        return (train_start, train_end), (test_start, test_end)

    def validate(self) -> None:
        if len(self.weight_names) < 2:
            raise ConfigError("weight_names는 2개 이상이어야 합니다.")
        if len(set(self.weight_names)) != len(self.weight_names):
            raise ConfigError("weight_names에 중복이 있습니다.")
        if not 0 < self.step <= 1:
            raise ConfigError(f"step 범위 오류: {self.step}")
        if not 0 <= self.min_weight < self.max_weight <= 1:
            raise ConfigError(f"가중치 범위 오류: [{self.min_weight}, {self.max_weight}]")
        if self.top_n < 1:
            raise ConfigError("top_n은 1 이상이어야 합니다.")
        if self.return_tolerance < 0:
            raise ConfigError("return_tolerance는 음수일 수 없습니다.")
        self.ranges()


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성. 모르는 키는 무시."""
        strategy_data = data.get("strategy") or {}
        backtest_data = data.get("backtest") or {}
        optimizer_data = data.get("optimizer") or {}

        strategy = StrategyConfig(**_pick(StrategyConfig, strategy_data))

        backtest_fields = _pick(BacktestConfig, backtest_data)
        if backtest_fields.get("mode") == "regime":
            backtest = BacktestConfig.regime(**backtest_fields)
        else:
            backtest = BacktestConfig.daily(**backtest_fields)

        optimizer = OptimizerConfig(**_pick(OptimizerConfig, optimizer_data))

        return cls(
            strategy=strategy,
            backtest=backtest,
            optimizer=optimizer,
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def validate(self) -> None:
        """전략/시뮬레이션 설정 검사. 최적화 설정은 최적화 실행 시에만 검사한다."""
        self.strategy.validate()
        self.backtest.validate()

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)


def config_field_names(cls) -> list[str]:
    """dataclass 필드 이름 목록 (CLI 오버라이드 검증용)."""
    return [f.name for f in fields(cls)]
