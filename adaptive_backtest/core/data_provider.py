"""
가격 데이터 제공 추상 클래스 정의.

[ 역할 ]
    OHLCV 봉 데이터를 제공하는 인터페이스.
    실제 데이터 수집(API, DB 등)은 범위 밖이며, 이 계약만 맞추면 어떤 소스든 사용 가능.

[ 구현체 ]
    - data/memory_provider.py::InMemoryDataProvider (미리 로드한 DataFrame 기반)

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataManager가 이 인터페이스로 봉 데이터를 읽어 정규화
    - run_backtest.py에서 샘플 데이터를 provider에 적재

[ 봉 데이터 형식 ]
    DataFrame columns: [timestamp, open, high, low, close, volume], timestamp 오름차순.
    일봉은 자정 timestamp, 분봉은 봉 시작 시각.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import pandas as pd

BAR_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


@dataclass(frozen=True)
class Bar:
    """단일 봉. vwap은 데이터 소스가 제공하는 경우에만 채워진다."""
    timestamp: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float
    vwap: float | None = None


def bars_to_frame(bars: list[Bar]) -> pd.DataFrame:
    """Bar 리스트 → 정규화된 DataFrame."""
    if not bars:
        return pd.DataFrame(columns=BAR_COLUMNS)
    df = pd.DataFrame([
        {
            "timestamp": b.timestamp,
            "open": b.open,
            "high": b.high,
            "low": b.low,
            "close": b.close,
            "volume": b.volume,
        }
        for b in bars
    ])
    return normalize_frame(df)


def normalize_frame(df: pd.DataFrame) -> pd.DataFrame:
    """컬럼명/타입/정렬을 맞춘 복사본 반환. 'date' 컬럼도 timestamp로 받아준다."""
    df = df.copy()
    if "timestamp" not in df.columns and "date" in df.columns:
        df = df.rename(columns={"date": "timestamp"})
    missing = [c for c in BAR_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"봉 데이터 컬럼 누락: {missing}")

    df["timestamp"] = pd.to_datetime(df["timestamp"])
    for col in ("open", "high", "low", "close", "volume"):
        df[col] = df[col].astype(float)
    return (
        df[BAR_COLUMNS]
        .sort_values("timestamp", kind="mergesort")
        .drop_duplicates(subset="timestamp", keep="last")
        .reset_index(drop=True)
    )


class DataProvider(ABC):
    """봉 데이터 제공 추상 클래스."""

    @abstractmethod
    def get_bars(
        self,
        symbol: str,
        start: pd.Timestamp | None = None,
        end: pd.Timestamp | None = None,
    ) -> pd.DataFrame:
        """기간 내 봉 데이터 조회. 없으면 빈 DataFrame.

        Returns:
            DataFrame with columns: [timestamp, open, high, low, close, volume]
        """
        ...

    @abstractmethod
    def get_symbols(self) -> list[str]:
        """조회 가능한 종목 목록."""
        ...
