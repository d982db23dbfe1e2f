from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings

from dbdiag.datasource.adapter import DataSourceConfig, Role
from dbdiag.engine import EngineConfig


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Primary (read-write endpoint; checks only read)
    primary_url: str = ""  # full SQLAlchemy URL, overrides the fields below
    primary_host: str = "localhost"
    primary_port: int | None = None
    primary_user: str = "db_user"
    primary_password: str = ""
    primary_database: str = "db_name"
    primary_connection_limit: int = 10

    # Replica (optional: leave host and url empty to run without one)
    replica_url: str = ""
    replica_host: str = ""
    replica_port: int | None = None
    replica_user: str = "db_user"
    replica_password: str = ""
    replica_database: str = "db_name"
    replica_connection_limit: int = 10

    db_driver: str = "mysql+pymysql"

    # Seconds a check waits for a pooled connection before ConnectionError
    pool_wait_timeout: float = 5.0
    # Seconds a single check may run before Timeout
    check_deadline: float = 10.0
    # Checks executing at once; queued checks start their deadline when they run
    max_workers: int = 8

    # Catalog (absolute or relative to CWD); empty = bundled checks.yaml
    checks_file: str = ""

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 5000

    # Logging
    log_level: str = "INFO"

    def data_sources(self) -> list[DataSourceConfig]:
        sources = [
            DataSourceConfig(
                role=Role.PRIMARY,
                url=self.primary_url,
                host=self.primary_host,
                port=self.primary_port,
                user=self.primary_user,
                password=self.primary_password,
                database=self.primary_database,
                driver=self.db_driver,
                connection_limit=self.primary_connection_limit,
                wait_timeout=self.pool_wait_timeout,
            )
        ]
        if self.replica_url or self.replica_host:
            sources.append(
                DataSourceConfig(
                    role=Role.REPLICA,
                    url=self.replica_url,
                    host=self.replica_host,
                    port=self.replica_port,
                    user=self.replica_user,
                    password=self.replica_password,
                    database=self.replica_database,
                    driver=self.db_driver,
                    connection_limit=self.replica_connection_limit,
                    wait_timeout=self.pool_wait_timeout,
                )
            )
        return sources

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            data_sources=self.data_sources(),
            check_deadline=self.check_deadline,
            max_workers=self.max_workers,
            checks_file=Path(self.checks_file) if self.checks_file else None,
        )


settings = Settings()
