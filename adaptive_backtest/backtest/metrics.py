"""
백테스트 성과 지표 계산 모듈.

[ 역할 ]
    시뮬레이션 결과(틱별 수익률 + 총자산 이력 + 체결 기록)를 받아 성과 지표를 계산.
    compute_metrics() 함수가 핵심.

[ 계산하는 지표 ]
    - 총 수익률 / 연환산 수익률 / 연환산 변동성
    - 샤프 비율: 초과수익(무위험 5%/년) 평균 / 모표준편차 × sqrt(연간 기간 수)
    - MDD: 초기자본에서 수익률을 복리로 누적한 값의 고점 대비 최대 하락
    - 승률, 평균 수익/손실(%), 수익 팩터, 실현 손익, 거래 비용 합계
    - 벤치마크 수익률과 초과 성과(alpha)

[ 기간 빈도 ]
    일봉 틱은 연 252기간. 분봉 틱은 infer_periods_per_year()가
    세션당 틱 수를 관측해 252 × (틱 수 / 세션 수)로 환산.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run() 완료 시 호출
    - optimization/walk_forward.py (후보 가중치 평가)
"""

from dataclasses import asdict, dataclass
from typing import Any

import numpy as np
import pandas as pd

from adaptive_backtest.data.portfolio import TradeRecord

TRADING_DAYS = 252
ZERO_STD_TOLERANCE = 1e-12


@dataclass
class PerformanceMetrics:
    """성과 지표. summary()로 포맷된 리포트 출력 가능."""
    total_return: float = 0.0       # 총 수익률 (%)
    annual_return: float = 0.0      # 연환산 수익률 (%)
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0       # 최대 낙폭 (%)
    volatility: float = 0.0         # 연환산 변동성 (%)
    final_value: float = 0.0
    periods: int = 0                # 처리한 틱 수
    periods_per_year: float = TRADING_DAYS
    total_trades: int = 0           # 매수 + 매도 체결 수
    buy_trades: int = 0
    sell_trades: int = 0
    winning_trades: int = 0         # 실현손익 > 0 인 매도
    losing_trades: int = 0
    win_rate: float = 0.0           # 매도 중 수익 비율 (%)
    avg_win_pct: float = 0.0
    avg_loss_pct: float = 0.0
    profit_factor: float | None = 0.0   # 총이익 / 총손실, 손실 매도가 없으면 None
    total_pnl: float = 0.0          # 실현 손익 합계
    total_fees: float = 0.0
    benchmark_return: float | None = None
    alpha: float | None = None      # 총 수익률 - 벤치마크 수익률

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리 변환."""
        return asdict(self)

    def summary(self) -> str:
        """성과 요약 문자열."""
        pf = "N/A" if self.profit_factor is None else f"{self.profit_factor:.2f}"
        lines = [
            "=" * 50,
            "백테스트 성과 리포트",
            "=" * 50,
            f"최종 자산:       {self.final_value:>12,.2f}",
            f"총 수익률:       {self.total_return:>12.2f}%",
            f"연환산 수익률:    {self.annual_return:>12.2f}%",
            f"샤프 비율:       {self.sharpe_ratio:>12.2f}",
            f"최대 낙폭(MDD):  {self.max_drawdown:>12.2f}%",
            f"변동성(연):      {self.volatility:>12.2f}%",
        ]
        if self.benchmark_return is not None:
            lines += [
                f"벤치마크 수익률:  {self.benchmark_return:>12.2f}%",
                f"알파:            {self.alpha:>12.2f}%",
            ]
        lines += [
            "-" * 50,
            f"총 체결 수:      {self.total_trades:>12d}",
            f"  매수 / 매도:   {self.buy_trades:>5d} / {self.sell_trades:<5d}",
            f"승률:            {self.win_rate:>12.2f}%",
            f"수익 / 손실 매도: {self.winning_trades:>5d} / {self.losing_trades:<5d}",
            f"평균 수익:       {self.avg_win_pct:>12.2f}%",
            f"평균 손실:       {self.avg_loss_pct:>12.2f}%",
            f"수익 팩터:       {pf:>12}",
            f"실현 손익:       {self.total_pnl:>12,.2f}",
            f"거래 비용:       {self.total_fees:>12,.2f}",
            "=" * 50,
        ]
        return "\n".join(lines)


# ─── 개별 지표 ──────────────────────────────────────────────────────────────

def total_return(final_value: float, initial_capital: float) -> float:
    return (final_value - initial_capital) / initial_capital * 100


def sharpe_ratio(
    returns: list[float],
    periods_per_year: float = TRADING_DAYS,
    risk_free_rate: float = 0.05,
) -> float:
    """연환산 샤프. 초과수익 표준편차가 0이면 0.

    상수 수열의 표준편차는 부동소수 오차로 0이 아닌 아주 작은 값이 나오므로
    평균 크기 대비 상대 허용오차로 0 여부를 판단한다.
    """
    if not returns:
        return 0.0
    excess = np.asarray(returns, dtype=float) - risk_free_rate / periods_per_year
    mean = float(np.mean(excess))
    std = float(np.std(excess))
    if std <= ZERO_STD_TOLERANCE * max(1.0, abs(mean)):
        return 0.0
    return mean / std * np.sqrt(periods_per_year)


def max_drawdown(returns: list[float], initial_capital: float) -> float:
    """복리 누적 가치의 고점 대비 최대 하락 (%)."""
    peak = initial_capital
    value = initial_capital
    worst = 0.0
    for r in returns:
        value *= 1 + r
        if value > peak:
            peak = value
        if peak > 0:
            worst = max(worst, (peak - value) / peak)
    return worst * 100


def volatility(returns: list[float], periods_per_year: float = TRADING_DAYS) -> float:
    if not returns:
        return 0.0
    return float(np.std(np.asarray(returns, dtype=float))) * np.sqrt(periods_per_year) * 100


def annualized_return(final_value: float, initial_capital: float, periods: int, periods_per_year: float) -> float:
    """(최종/초기)^(연간 기간 수/기간 수) - 1."""
    if periods <= 0 or final_value <= 0 or initial_capital <= 0:
        return 0.0
    years = periods / periods_per_year
    return ((final_value / initial_capital) ** (1 / years) - 1) * 100


def infer_periods_per_year(timestamps: list[pd.Timestamp]) -> float:
    """관측 빈도 기반 연간 기간 수. 하루 1틱이면 252."""
    if len(timestamps) < 2:
        return float(TRADING_DAYS)
    sessions = len({pd.Timestamp(t).normalize() for t in timestamps})
    return TRADING_DAYS * len(timestamps) / max(1, sessions)


# ─── 종합 ───────────────────────────────────────────────────────────────────

def compute_metrics(
    returns: list[float],
    values: list[float],
    trades: list[TradeRecord],
    initial_capital: float,
    periods_per_year: float = TRADING_DAYS,
    risk_free_rate: float = 0.05,
    benchmark_values: list[float] | None = None,
) -> PerformanceMetrics:
    """성과 지표 계산. engine.py에서 시뮬레이션 완료 후 호출됨.

    Args:
        returns: 틱별 수익률 (직전 틱 총자산 대비)
        values: 틱별 총자산
        trades: 체결 기록 (매수 + 매도)
        initial_capital: 초기 자본
        periods_per_year: 연간 틱 수
        benchmark_values: 초기자본으로 정규화한 벤치마크 가치 (없으면 생략)
    """
    metrics = PerformanceMetrics(periods_per_year=periods_per_year)
    final_value = values[-1] if values else initial_capital
    metrics.final_value = final_value
    metrics.periods = len(returns)

    # ─── 수익률 / 위험 ──────────────────────────────────────────────────
    metrics.total_return = total_return(final_value, initial_capital)
    metrics.annual_return = annualized_return(final_value, initial_capital, len(returns), periods_per_year)
    metrics.sharpe_ratio = sharpe_ratio(returns, periods_per_year, risk_free_rate)
    metrics.max_drawdown = max_drawdown(returns, initial_capital)
    metrics.volatility = volatility(returns, periods_per_year)

    # ─── 체결 기반 지표 (실현은 매도에서만) ─────────────────────────────
    sells = [t for t in trades if t.action == "SELL"]
    metrics.total_trades = len(trades)
    metrics.sell_trades = len(sells)
    metrics.buy_trades = len(trades) - len(sells)
    metrics.total_fees = sum(t.fee for t in trades)

    if sells:
        winners = [t for t in sells if t.gain_loss > 0]
        losers = [t for t in sells if t.gain_loss <= 0]
        metrics.winning_trades = len(winners)
        metrics.losing_trades = len(losers)
        metrics.win_rate = len(winners) / len(sells) * 100
        metrics.total_pnl = sum(t.gain_loss for t in sells)

        if winners:
            metrics.avg_win_pct = sum(t.gain_loss_percent for t in winners) / len(winners)
        if losers:
            metrics.avg_loss_pct = sum(t.gain_loss_percent for t in losers) / len(losers)

        gross_profit = sum(t.gain_loss for t in winners)
        gross_loss = abs(sum(t.gain_loss for t in losers))
        metrics.profit_factor = gross_profit / gross_loss if gross_loss > 0 else None

    # ─── 벤치마크 ───────────────────────────────────────────────────────
    if benchmark_values:
        metrics.benchmark_return = total_return(benchmark_values[-1], initial_capital)
        metrics.alpha = metrics.total_return - metrics.benchmark_return

    return metrics
