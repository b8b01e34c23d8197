"""HTTP API for stored candles."""
