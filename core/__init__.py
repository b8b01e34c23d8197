"""Core domain modules.

This package contains the market data building blocks:

- market_data: timeframe table and maintenance passes (gap detection, archiving, compression)
- analytics: pure statistics over price/return/value series
- analysis: store-fed helpers that feed the statistics engine
- persistence: persistence boundary (interfaces)
- storage: concrete SQL implementation of the persistence interfaces
"""
