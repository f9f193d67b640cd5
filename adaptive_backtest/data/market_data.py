"""
시장 데이터 관리 모듈.

[ 역할 ]
    종목별 봉 DataFrame을 정규화해 보관하고, 시뮬레이션에 필요한 조회를 제공.
    모든 조회는 "시점 이하" 데이터만 돌려주므로 미래 데이터가 새지 않는다.
    이력이 너무 짧은 종목은 로드 시 제외 (에러가 아니라 로그만 남김).

[ 의존성 ]
    - core/data_provider.py::DataProvider (from_provider 사용 시)

[ 호출하는 곳 ]
    - backtest/signals.py::SignalPrecomputer가 틱 달력과 종목 이력 조회에 사용
    - run_backtest.py에서 샘플 데이터로 생성
"""

import numpy as np
import pandas as pd

from adaptive_backtest.core.data_provider import DataProvider, normalize_frame
from adaptive_backtest.utils.logger import get_logger

logger = get_logger("data")


class MarketDataManager:
    """종목별 봉 데이터 보관 + 시점 기준 조회.

    사용 예:
        manager = MarketDataManager({"AAPL": df_aapl, "SPY": df_spy}, min_bars=50)
        hist = manager.history("AAPL", pd.Timestamp("2024-03-01"))
    """

    def __init__(self, frames: dict[str, pd.DataFrame], min_bars: int = 0):
        self._frames: dict[str, pd.DataFrame] = {}
        self._index: dict[str, np.ndarray] = {}   # symbol → timestamp 배열 (searchsorted용)

        for symbol in sorted(frames):
            df = normalize_frame(frames[symbol])
            if len(df) < min_bars:
                logger.warning(f"{symbol}: 봉 {len(df)}개 < 최소 {min_bars}개, 제외")
                continue
            self._frames[symbol] = df
            self._index[symbol] = df["timestamp"].to_numpy(dtype="datetime64[ns]")

        logger.debug(f"시장 데이터 로드: {len(self._frames)}종목")

    @classmethod
    def from_provider(
        cls,
        provider: DataProvider,
        symbols: list[str] | None = None,
        start: pd.Timestamp | None = None,
        end: pd.Timestamp | None = None,
        min_bars: int = 0,
    ) -> "MarketDataManager":
        """DataProvider에서 종목별 데이터를 읽어 생성. 빈 데이터 종목은 건너뜀."""
        frames = {}
        for symbol in symbols or provider.get_symbols():
            df = provider.get_bars(symbol, start, end)
            if df.empty:
                logger.warning(f"{symbol}: 데이터 없음, 제외")
                continue
            frames[symbol] = df
        return cls(frames, min_bars=min_bars)

    @property
    def symbols(self) -> list[str]:
        return list(self._frames.keys())

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._frames

    def __len__(self) -> int:
        return len(self._frames)

    def frame(self, symbol: str) -> pd.DataFrame:
        return self._frames[symbol]

    def frames(self) -> dict[str, pd.DataFrame]:
        return dict(self._frames)

    def _position(self, symbol: str, ts: pd.Timestamp, inclusive: bool) -> int:
        side = "right" if inclusive else "left"
        return int(np.searchsorted(self._index[symbol], pd.Timestamp(ts).to_datetime64(), side=side))

    def history(
        self,
        symbol: str,
        until: pd.Timestamp,
        inclusive: bool = True,
        lookback: int | None = None,
    ) -> pd.DataFrame:
        """until 시점까지의 봉 (inclusive=False면 until 미만). lookback이면 마지막 N개만."""
        if symbol not in self._frames:
            return self._empty()
        end = self._position(symbol, until, inclusive)
        start = max(0, end - lookback) if lookback else 0
        return self._frames[symbol].iloc[start:end]

    def price_on(self, symbol: str, ts: pd.Timestamp) -> float | None:
        """ts에 정확히 해당하는 봉의 종가. 없으면 None."""
        if symbol not in self._frames:
            return None
        pos = self._position(symbol, ts, inclusive=False)
        index = self._index[symbol]
        if pos < len(index) and index[pos] == pd.Timestamp(ts).to_datetime64():
            return float(self._frames[symbol]["close"].iat[pos])
        return None

    def session(self, symbol: str, until: pd.Timestamp) -> pd.DataFrame:
        """until과 같은 날짜의 봉 중 until 이하인 것 (당일 세션)."""
        if symbol not in self._frames:
            return self._empty()
        day_start = pd.Timestamp(until).normalize()
        start = self._position(symbol, day_start, inclusive=False)
        end = self._position(symbol, until, inclusive=True)
        return self._frames[symbol].iloc[start:end]

    def timeline(self) -> list[pd.Timestamp]:
        """전 종목 timestamp 합집합 (오름차순)."""
        if not self._index:
            return []
        merged = np.unique(np.concatenate(list(self._index.values())))
        return [pd.Timestamp(t) for t in merged]

    def calendar(
        self,
        start: pd.Timestamp | None = None,
        end: pd.Timestamp | None = None,
        benchmark: str | None = None,
    ) -> list[pd.Timestamp]:
        """거래 달력. 벤치마크 종목이 있으면 그 종목의 날짜, 없으면 전 종목 합집합."""
        if benchmark and benchmark in self._frames:
            stamps = [pd.Timestamp(t) for t in self._index[benchmark]]
        else:
            stamps = self.timeline()
        return [
            t for t in stamps
            if (start is None or t >= start) and (end is None or t <= end)
        ]

    @staticmethod
    def _empty() -> pd.DataFrame:
        return pd.DataFrame(columns=["timestamp", "open", "high", "low", "close", "volume"])
