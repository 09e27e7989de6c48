"""Runtime configuration objects for entsql."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

_TRUTHY = ("true", "1", "yes", "on")


@dataclass
class EntsqlConfig:
    """Execution options shared by every CRUD call of an executor."""

    dialect: str | None = None  # Overrides the dialect reported by the handle
    query_timeout: float | None = None  # Default per-call deadline in seconds
    log_parameters: bool = False
    sql_preview_length: int = 200
    options: dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.query_timeout is not None and self.query_timeout <= 0:
            raise ValueError("query_timeout must be a positive number of seconds")
        if self.sql_preview_length <= 0:
            raise ValueError("sql_preview_length must be positive")

    def preview(self, sql: str) -> str:
        """Truncate ``sql`` for log lines and error messages."""
        limit = self.sql_preview_length
        return sql[:limit] + "..." if len(sql) > limit else sql


def _load_env_config() -> dict[str, object]:
    """Load configuration from environment variables.

    Returns:
        Dictionary of configuration values from environment
    """
    config: dict[str, object] = {}

    if "ENTSQL_DIALECT" in os.environ:
        config["dialect"] = os.environ["ENTSQL_DIALECT"]

    if "ENTSQL_QUERY_TIMEOUT" in os.environ:
        config["query_timeout"] = float(os.environ["ENTSQL_QUERY_TIMEOUT"])

    if "ENTSQL_LOG_PARAMETERS" in os.environ:
        config["log_parameters"] = os.environ["ENTSQL_LOG_PARAMETERS"].lower() in _TRUTHY

    if "ENTSQL_SQL_PREVIEW_LENGTH" in os.environ:
        config["sql_preview_length"] = int(os.environ["ENTSQL_SQL_PREVIEW_LENGTH"])

    return config


def create_config(**kwargs: object) -> EntsqlConfig:
    """Build an :class:`EntsqlConfig` from keyword arguments and the environment.

    Supports environment variables for configuration:
    - ENTSQL_DIALECT: Override dialect detection (e.g. "postgresql", "pgx")
    - ENTSQL_QUERY_TIMEOUT: Default statement deadline in seconds
    - ENTSQL_LOG_PARAMETERS: Include bound parameters in logs (true/false)
    - ENTSQL_SQL_PREVIEW_LENGTH: Maximum SQL length in log lines

    Args:
        **kwargs: Configuration options. Valid keys are the fields of
            :class:`EntsqlConfig`; other options are stored in ``config.options``.

    Returns:
        EntsqlConfig instance with parsed configuration

    Raises:
        ValueError: If a value fails validation
    """
    env_config = _load_env_config()

    # kwargs override env vars, env vars override defaults
    merged_kwargs = {**env_config, **kwargs}

    known: dict[str, object] = {
        k: merged_kwargs.pop(k)
        for k in list(merged_kwargs)
        if k in EntsqlConfig.__dataclass_fields__ and k != "options"
    }
    options = dict(merged_kwargs.pop("options", None) or {})  # type: ignore[call-overload]
    options.update(merged_kwargs)
    return EntsqlConfig(options=options, **known)  # type: ignore[arg-type]


DEFAULT_CONFIG = EntsqlConfig()
