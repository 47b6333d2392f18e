"""SQLAlchemy models and session management."""
