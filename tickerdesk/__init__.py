"""
TickerDesk: stock and crypto position tracker with live prices and auto-trading.

Application package root. This is a modular monolith using
hexagonal architecture (ports & adapters) around a single
trading bounded context.
"""
