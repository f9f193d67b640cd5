"""
=============================================================================
레짐 적응형 멀티전략 백테스터 (Adaptive Backtest)
=============================================================================

[ 시스템 전체 구조 ]

    run_backtest.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드 / 검증
         ├── utils/logger.py        ← 로깅
         │
         ├── data/market_data.py    ← 종목별 봉 데이터 정리 + 시점 조회
         │
         ├── backtest/signals.py    ← 틱 스케줄 + 시그널 사전계산 (종목 단위 병렬)
         │     ├── strategies/            ← 8개 전략 (일봉 4 + 레짐 4)
         │     ├── analysis/indicators.py ← SMA/EMA/RSI/MACD/BB/ATR/ADX/VWAP
         │     ├── analysis/regime.py     ← 일봉 기반 시장 레짐 판정
         │     └── analysis/combiner.py   ← 결합 점수 + 5단계 추천
         │
         ├── backtest/engine.py     ← 틱 루프 (순차, 틱 단위 원자적 반영)
         │     ├── backtest/phases.py   ← 시가평가 → 매도 → 교체 → 매수
         │     ├── data/portfolio.py    ← 현금/보유/체결 기록
         │     └── backtest/metrics.py  ← 성과 지표
         │
         └── optimization/walk_forward.py ← 가중치 그리드 탐색 + 검증 구간 평가


[ 두 가지 모드 ]

    daily  : 일봉 틱. momentum / mean_reversion / sentiment / technical 고정 가중치 결합
    regime : 5분봉 틱. trend_momentum / macd_trend (추세) + bb_rsi_reversion / vwap_reversion
             (평균회귀) 그룹을 레짐별 비중으로 결합, ATR 기반 사이징과 손절/익절


[ 데이터 흐름 ]

    1. config.yaml에서 모드/가중치/시뮬레이션 파라미터 로드
    2. DataProvider(또는 DataFrame dict)가 OHLCV 데이터 제공
    3. SignalPrecomputer가 모든 틱의 시그널/가격/ATR을 미리 계산 (TickData)
    4. BacktestEngine이 TickData를 순서대로 포트폴리오에 반영
    5. metrics.py가 수익률/샤프/MDD/승률 계산
    6. (선택) WalkForwardOptimizer가 3~5를 가중치 후보마다 반복
"""
