"""
백테스트 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml 설정 사용)
    python run_backtest.py

    # 모드 지정 (daily: 일봉 4전략 / regime: 5분봉 레짐 적응형)
    python run_backtest.py --mode regime --sample

    # 시뮬레이션 파라미터 / 전략 파라미터 오버라이드
    python run_backtest.py -p max_positions=20 -p buy_threshold=0.05
    python run_backtest.py -p momentum.short_period=10

    # CSV 데이터 사용 ({data_dir}/{종목}.csv 일봉, {data_dir}/{종목}_5m.csv 분봉)
    python run_backtest.py --source csv --data-dir ./data

    # 워크포워드 가중치 최적화 (config.yaml의 optimizer 구간 사용)
    python run_backtest.py --optimize --sample --jobs 4

    # 결과 JSON 저장
    python run_backtest.py --sample --output results/backtest.json

    # 등록된 전략 목록 확인
    python run_backtest.py --list
"""

import argparse
import json
import zlib
from datetime import date
from pathlib import Path

import numpy as np
import pandas as pd

from adaptive_backtest.backtest.engine import BacktestEngine, BacktestResult
from adaptive_backtest.backtest.signals import SignalPrecomputer
from adaptive_backtest.core.signal_types import SignalFamily
from adaptive_backtest.data.market_data import MarketDataManager
from adaptive_backtest.optimization.walk_forward import WalkForwardOptimizer
from adaptive_backtest.strategies import list_strategies
from adaptive_backtest.utils.config import (
    BacktestConfig,
    Config,
    ConfigError,
    config_field_names,
)
from adaptive_backtest.utils.logger import setup_logger

DEFAULT_TICKERS = ["SPY", "AAPL", "MSFT", "NVDA", "AMZN", "GOOGL", "META", "JPM"]
SAMPLE_START = {"daily": date(2022, 1, 3), "regime": date(2024, 1, 2)}
SAMPLE_END = date(2024, 12, 31)
SESSION_BARS = 78   # 09:30 ~ 15:55, 5분봉


# ─── 샘플 데이터 ────────────────────────────────────────────────────────────

def _seed(ticker: str) -> int:
    return zlib.crc32(ticker.encode("utf-8"))


def generate_sample_data(
    ticker: str,
    start_date: date,
    end_date: date,
    initial_price: float = 100.0,
    volatility: float = 0.015,
) -> pd.DataFrame:
    """백테스트용 일봉 샘플 데이터 (랜덤워크). 같은 ticker면 항상 같은 결과."""
    np.random.seed(_seed(ticker))

    dates = pd.bdate_range(start=start_date, end=end_date)
    n = len(dates)

    returns = np.random.normal(0.0004, volatility, n)
    prices = initial_price * np.cumprod(1 + returns)

    data = []
    for i, d in enumerate(dates):
        close = prices[i]
        high = close * (1 + abs(np.random.normal(0, 0.008)))
        low = close * (1 - abs(np.random.normal(0, 0.008)))
        open_price = close * (1 + np.random.normal(0, 0.004))
        volume = int(np.random.lognormal(15, 0.5))

        data.append({
            "date": d,
            "open": round(open_price, 2),
            "high": round(max(high, open_price, close), 2),
            "low": round(min(low, open_price, close), 2),
            "close": round(close, 2),
            "volume": volume,
        })

    return pd.DataFrame(data)


def generate_intraday_sample(
    ticker: str,
    start_date: date,
    end_date: date,
    initial_price: float = 100.0,
    volatility: float = 0.0015,
) -> pd.DataFrame:
    """5분봉 샘플 데이터. 영업일마다 09:30부터 78봉, 장중 U자형 거래량."""
    np.random.seed(_seed(ticker) ^ 0x5F5F)

    days = pd.bdate_range(start=start_date, end=end_date)
    offsets = pd.to_timedelta(np.arange(SESSION_BARS) * 5, unit="min") + pd.Timedelta(hours=9, minutes=30)
    volume_shape = 1.5 - np.sin(np.linspace(0, np.pi, SESSION_BARS))

    frames = []
    price = initial_price
    for day in days:
        gap = np.random.normal(0, volatility * 3)
        returns = np.random.normal(0.00002, volatility, SESSION_BARS)
        returns[0] += gap
        closes = price * np.cumprod(1 + returns)
        opens = np.concatenate([[price * (1 + gap)], closes[:-1]])
        wiggle = np.abs(np.random.normal(0, volatility / 2, SESSION_BARS))
        frames.append(pd.DataFrame({
            "timestamp": day + offsets,
            "open": np.round(opens, 2),
            "high": np.round(np.maximum(opens, closes) * (1 + wiggle), 2),
            "low": np.round(np.minimum(opens, closes) * (1 - wiggle), 2),
            "close": np.round(closes, 2),
            "volume": (np.random.lognormal(10, 0.4, SESSION_BARS) * volume_shape).astype(int),
        }))
        price = closes[-1]

    return pd.concat(frames, ignore_index=True)


def aggregate_daily(intraday: pd.DataFrame) -> pd.DataFrame:
    """분봉 → 일봉 집계."""
    grouped = intraday.groupby(intraday["timestamp"].dt.normalize())
    daily = grouped.agg(
        open=("open", "first"),
        high=("high", "max"),
        low=("low", "min"),
        close=("close", "last"),
        volume=("volume", "sum"),
    )
    return daily.rename_axis("timestamp").reset_index()


# ─── 데이터 로드 ────────────────────────────────────────────────────────────

def load_data(
    config: Config,
    source: str,
    data_dir: str | None = None,
) -> tuple[dict[str, pd.DataFrame], dict[str, pd.DataFrame] | None]:
    """(일봉 dict, 분봉 dict 또는 None)."""
    mode = config.backtest.mode
    tickers = config.strategy.tickers or DEFAULT_TICKERS

    if source == "sample":
        start = SAMPLE_START[mode]
        if config.backtest.start_date:
            # 지표 워밍업 구간 확보
            start = min(start, (pd.Timestamp(config.backtest.start_date) - pd.DateOffset(months=4)).date())
        end = pd.Timestamp(config.backtest.end_date).date() if config.backtest.end_date else SAMPLE_END
        print(f"샘플 데이터 생성 중 ({mode}, {start} ~ {end})...")

        daily, intraday = {}, {}
        for ticker in tickers:
            initial_price = 50 + _seed(ticker) % 400
            if mode == "regime":
                intraday[ticker] = generate_intraday_sample(ticker, start, end, initial_price)
                daily[ticker] = aggregate_daily(intraday[ticker])
                print(f"  {ticker}: {len(daily[ticker])}일 / {len(intraday[ticker])}봉")
            else:
                daily[ticker] = generate_sample_data(ticker, start, end, initial_price)
                print(f"  {ticker}: {len(daily[ticker])}일 데이터")
        return daily, (intraday if mode == "regime" else None)

    elif source == "csv":
        base = Path(data_dir or "data")
        print(f"CSV 데이터 로드 중 ({base})...")
        daily, intraday = {}, {}
        for ticker in tickers:
            daily_path = base / f"{ticker}.csv"
            intraday_path = base / f"{ticker}_5m.csv"
            if daily_path.exists():
                daily[ticker] = pd.read_csv(daily_path)
            if mode == "regime" and intraday_path.exists():
                intraday[ticker] = pd.read_csv(intraday_path)
            if ticker not in daily and ticker not in intraday:
                print(f"  [SKIP] {ticker}: 파일 없음")
                continue
            print(f"  {ticker}: 일봉 {len(daily.get(ticker, []))} / 분봉 {len(intraday.get(ticker, []))}")
        if not daily and not intraday:
            print("\n오류: 백테스트할 데이터가 없습니다.")
            print("  1. {data_dir}/{종목}.csv 형식으로 일봉 파일 준비")
            print("  2. --source sample 옵션으로 샘플 데이터 사용")
        return daily, (intraday if mode == "regime" else None)

    else:
        print(f"오류: 알 수 없는 데이터 소스: {source}")
        return {}, None


# ─── 설정 오버라이드 ────────────────────────────────────────────────────────

def parse_param(param_str: str) -> tuple[str, object]:
    """'key=value' 문자열을 파싱하여 (key, value) 반환. 숫자면 자동 변환."""
    key, _, value = param_str.partition("=")
    key = key.strip()
    value = value.strip()

    # 숫자 자동 변환
    try:
        if "." in value:
            return key, float(value)
        return key, int(value)
    except ValueError:
        # bool 변환
        if value.lower() in ("true", "yes"):
            return key, True
        if value.lower() in ("false", "no"):
            return key, False
        return key, value


def apply_overrides(config: Config, mode: str | None, params: list[str]) -> None:
    """--mode, -p 오버라이드 반영.

    'strategy.param=value'는 전략 파라미터, 그 외는 BacktestConfig 필드.
    """
    if mode and mode != config.backtest.mode:
        keep = {
            k: getattr(config.backtest, k)
            for k in ("start_date", "end_date", "initial_capital", "benchmark_symbol", "risk_free_rate")
        }
        preset = BacktestConfig.regime if mode == "regime" else BacktestConfig.daily
        config.backtest = preset(**keep)

    backtest_fields = set(config_field_names(BacktestConfig))
    for p in params:
        key, value = parse_param(p)
        if "." in key:
            strategy, _, name = key.partition(".")
            config.strategy.params.setdefault(strategy, {})[name] = value
        elif key in backtest_fields:
            setattr(config.backtest, key, value)
        else:
            raise ConfigError(f"알 수 없는 파라미터: {key}")


# ─── 출력 ───────────────────────────────────────────────────────────────────

def print_result(result: BacktestResult) -> None:
    """단일 백테스트 결과 출력."""
    print(f"\n[기간: {result.start} ~ {result.end}]")
    print(result.summary.summary())

    sells = [t for t in result.trades if t.action == "SELL"]
    if sells:
        print("\n최근 매도 거래 (최대 5건):")
        for t in sells[-5:]:
            profit_str = f"+{t.gain_loss:,.2f}" if t.gain_loss > 0 else f"{t.gain_loss:,.2f}"
            print(f"  [{t.timestamp}] {t.symbol} {t.shares:.4f}주 @ {t.price:,.2f} -> {profit_str} ({t.reason})")

    holdings = result.final_portfolio.get("holdings", {})
    if holdings:
        print(f"\n보유 종목 ({len(holdings)}):")
        for symbol, h in list(holdings.items())[:10]:
            print(f"  {symbol:<8} {h['shares']:.4f}주  평가 {h['market_value']:,.2f}  ({h['gain_loss_percent']:+.2f}%)")


def save_output(payload: dict, path: str) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, default=str)
    print(f"\n결과 저장: {out}")


def main():
    parser = argparse.ArgumentParser(description="레짐 적응형 멀티전략 백테스트 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로 (.yaml / .json)")
    parser.add_argument("--mode", type=str, default=None, choices=["daily", "regime"], help="시뮬레이션 모드")
    parser.add_argument("-p", "--param", action="append", default=[], help="파라미터 오버라이드 (예: -p max_positions=20)")
    parser.add_argument("--sample", action="store_true", help="샘플 데이터로 테스트")
    parser.add_argument("--source", type=str, default="sample", choices=["sample", "csv"], help="데이터 소스")
    parser.add_argument("--data-dir", type=str, default=None, help="CSV 데이터 디렉토리")
    parser.add_argument("--optimize", action="store_true", help="워크포워드 가중치 최적화 실행")
    parser.add_argument("--jobs", type=int, default=None, help="병렬 프로세스 수 (기본: config의 optimizer.n_jobs)")
    parser.add_argument("--output", type=str, default=None, help="결과 JSON 저장 경로")
    parser.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    args = parser.parse_args()

    # 전략 목록 출력
    if args.list:
        for family in SignalFamily:
            print(f"{family.value} 전략:")
            for name in list_strategies(family):
                print(f"  - {name}")
        return

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_json(config_path) if config_path.suffix == ".json" else Config.from_yaml(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()

    try:
        apply_overrides(config, args.mode, args.param)
        config.validate()
    except ConfigError as e:
        print(f"설정 오류: {e}")
        return

    # 로거
    logger = setup_logger(level=config.log_level, log_dir=config.log_dir)

    # --sample 호환
    if args.sample:
        args.source = "sample"

    daily_frames, intraday_frames = load_data(config, args.source, args.data_dir)
    if not daily_frames and not intraday_frames:
        return

    backtest = config.backtest
    daily = MarketDataManager(
        daily_frames,
        min_bars=backtest.warmup_bars if backtest.family == SignalFamily.DAILY else 0,
    )
    intraday = (
        MarketDataManager(intraday_frames, min_bars=backtest.min_intraday_bars)
        if intraday_frames is not None else None
    )
    n_jobs = args.jobs if args.jobs is not None else config.optimizer.n_jobs

    try:
        # ─── 최적화 모드 ─────────────────────────────────────────────────
        if args.optimize:
            config.optimizer.n_jobs = n_jobs
            optimizer = WalkForwardOptimizer(backtest, config.optimizer, config.strategy)
            ticks = SignalPrecomputer(backtest, config.strategy, n_jobs=n_jobs).build(daily, intraday)
            result = optimizer.run(ticks)
            print(result.summary())
            if args.output:
                save_output(result.to_dict(), args.output)
            return

        # ─── 단일 실행 모드 ──────────────────────────────────────────────
        print(f"\n모드: {backtest.mode}")
        if args.param:
            print(f"파라미터 오버라이드: {dict(parse_param(p) for p in args.param)}")

        ticks = SignalPrecomputer(backtest, config.strategy, n_jobs=n_jobs).build(daily, intraday)
        result = BacktestEngine(backtest).run(ticks)
    except ConfigError as e:
        logger.error(f"설정 오류: {e}")
        return

    print_result(result)
    if args.output:
        save_output(result.to_dict(), args.output)


if __name__ == "__main__":
    main()
