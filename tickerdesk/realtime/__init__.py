"""
Real-time market data.

Price stream manager for dashboard clients and the supervisor
that runs the exchange feeds in the background.
"""
