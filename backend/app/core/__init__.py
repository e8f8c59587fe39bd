"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — structured JSON logging with alert-cycle context
    errors          — exception hierarchy & handlers
    health          — health check aggregation
"""
