"""Data sources — pooled adapters per database role."""

from .adapter import (
    DataSourceAdapter,
    DataSourceConfig,
    DataSourceUnavailable,
    MissingDataSource,
    QueryFailed,
    QueryResult,
    Role,
    build_adapters,
)
