"""
Trading bounded context: domain layer.

Holdings, settings, transactions, auto-trade locks, technical
indicators and the threshold rules that drive auto-trading.
"""
