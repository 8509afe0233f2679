"""Database connection module."""

from postcomment.core.database.async_cassandra import (
    AsyncCassandraConnection,
    init_async_cassandra,
    shutdown_async_cassandra,
)
from postcomment.core.database.worker_lease import WorkerIdLease


__all__ = [
    "AsyncCassandraConnection",
    "init_async_cassandra",
    "shutdown_async_cassandra",
    "WorkerIdLease",
]
