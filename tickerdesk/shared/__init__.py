"""
Shared module package.

Contains cross-cutting concerns used across layers:
- Error handling and mapping
- Logging configuration
- Security middleware and rate limiting
- Database retry policy
"""
