"""
Core infrastructure layer for Quarry.

- Configuration (Config, ConfigManager): src.core.config
- Structured logging: src.core.logging
- Async database engine and transactions: src.core.database
- Redis client and distributed lock: src.core.redis
- In-process event bus: src.core.event

This package is intentionally thin. Feature modules import from the
subpackages directly.
"""
