"""Background jobs that keep open positions' OI windows current."""
