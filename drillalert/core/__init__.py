"""
Core package — cross-cutting concerns.

Modules:
    config      — environment variables & settings
    logging     — structured JSON logging
    errors      — exception hierarchy & handlers
    middleware  — request ID / timing / access log
    health      — health check aggregation
    database    — async SQLAlchemy engine and sessions
"""
