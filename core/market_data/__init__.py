"""Market data maintenance.

Timeframe table plus the passes that run over stored candle series: gap
detection, archiving/pruning and compression into coarser timeframes.
"""

from core.market_data.archiver import archive_candles, prune_candles
from core.market_data.compressor import aggregate_candles, compress_candles
from core.market_data.gaps import find_candle_gaps, find_gaps
from core.market_data.timeframes import TIMEFRAMES, TimeframeSpec, get_timeframe_spec, timeframe_minutes

__all__ = [
    "TIMEFRAMES",
    "TimeframeSpec",
    "aggregate_candles",
    "archive_candles",
    "compress_candles",
    "find_candle_gaps",
    "find_gaps",
    "get_timeframe_spec",
    "prune_candles",
    "timeframe_minutes",
]
