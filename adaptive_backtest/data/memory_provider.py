"""
메모리 기반 데이터 제공자.

[ 역할 ]
    core/data_provider.py::DataProvider 구현체.
    미리 로드된 DataFrame(샘플 데이터, 파일에서 읽은 데이터 등)에서 봉 데이터를 제공.
    실제 데이터 수집은 범위 밖이므로, 외부 소스는 이 provider에 적재해서 넘긴다.

[ 호출하는 곳 ]
    - run_backtest.py에서 샘플 데이터를 load_data()로 적재
    - data/market_data.py::MarketDataManager.from_provider()
"""

import pandas as pd

from adaptive_backtest.core.data_provider import BAR_COLUMNS, DataProvider, normalize_frame


class InMemoryDataProvider(DataProvider):
    """DataFrame 기반 데이터 제공자.

    사용법:
        provider = InMemoryDataProvider()
        provider.load_data("AAPL", df)
        bars = provider.get_bars("AAPL", start, end)
    """

    def __init__(self, frames: dict[str, pd.DataFrame] | None = None):
        self._data: dict[str, pd.DataFrame] = {}
        for symbol, df in (frames or {}).items():
            self.load_data(symbol, df)

    def load_data(self, symbol: str, df: pd.DataFrame) -> None:
        """데이터 로드.

        Args:
            symbol: 종목 코드
            df: OHLCV DataFrame (columns: timestamp 또는 date, open, high, low, close, volume)
        """
        self._data[symbol] = normalize_frame(df)

    def get_bars(
        self,
        symbol: str,
        start: pd.Timestamp | None = None,
        end: pd.Timestamp | None = None,
    ) -> pd.DataFrame:
        if symbol not in self._data:
            return pd.DataFrame(columns=BAR_COLUMNS)

        df = self._data[symbol]
        mask = pd.Series(True, index=df.index)
        if start is not None:
            mask &= df["timestamp"] >= pd.Timestamp(start)
        if end is not None:
            mask &= df["timestamp"] <= pd.Timestamp(end)
        return df[mask].copy().reset_index(drop=True)

    def get_symbols(self) -> list[str]:
        return list(self._data.keys())
