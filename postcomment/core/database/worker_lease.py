"""Snowflake worker ids leased from Cassandra.

Every process claims a free worker id with a lightweight transaction and
keeps the claim alive by refreshing its TTL. Two live processes never hold
the same worker id, whatever their settings say, so ids they generate in the
same millisecond still differ.
"""

import asyncio
import contextlib
import os
import socket
import uuid

from cassandra import DriverException
from cassandra.cluster import NoHostAvailable

from postcomment.core.exceptions import InfrastructureError
from postcomment.core.ids import MAX_WORKER_ID, SnowflakeIdGenerator
from postcomment.core.logging import get_logger


logger = get_logger(__name__)


WORKER_LEASES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.worker_leases (
    worker_id INT PRIMARY KEY,
    owner TEXT
)
"""


def default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class WorkerIdLease:
    """A worker id held by this process for as long as it keeps renewing."""

    def __init__(
        self,
        session,
        keyspace: str,
        ttl_seconds: int = 60,
        owner: str | None = None,
    ):
        self.session = session
        self.ttl_seconds = ttl_seconds
        self.owner = owner or default_owner()
        self.worker_id: int | None = None
        self._renewal: asyncio.Task | None = None

        self._claim = session.prepare(f"""
            INSERT INTO {keyspace}.worker_leases (worker_id, owner)
            VALUES (?, ?) IF NOT EXISTS USING TTL ?
        """)
        self._renew = session.prepare(f"""
            UPDATE {keyspace}.worker_leases USING TTL ?
            SET owner = ? WHERE worker_id = ? IF owner = ?
        """)
        self._release = session.prepare(f"""
            DELETE FROM {keyspace}.worker_leases
            WHERE worker_id = ? IF owner = ?
        """)

    async def acquire(self, preferred: int = 0) -> int:
        """Claim the first free worker id, starting at ``preferred``.

        Raises:
            InfrastructureError: Every worker id is held by a live process.
        """
        for offset in range(MAX_WORKER_ID + 1):
            candidate = (preferred + offset) % (MAX_WORKER_ID + 1)
            result = await self.session.aexecute(
                self._claim, [candidate, self.owner, self.ttl_seconds]
            )
            if result.was_applied:
                self.worker_id = candidate
                logger.info("worker_id_leased", worker_id=candidate, owner=self.owner)
                return candidate
        msg = "No free Snowflake worker id"
        raise InfrastructureError(msg)

    async def renew(self) -> bool:
        """Refresh the TTL. False when another owner holds the id now."""
        result = await self.session.aexecute(
            self._renew, [self.ttl_seconds, self.owner, self.worker_id, self.owner]
        )
        return result.was_applied

    async def keep_alive(self, generator: SnowflakeIdGenerator) -> None:
        """Renew until cancelled. A lost lease moves ``generator`` to a new id."""
        while True:
            await asyncio.sleep(self.ttl_seconds / 3)
            try:
                if await self.renew():
                    continue
                logger.error("worker_id_lease_lost", worker_id=self.worker_id)
                generator.reassign(await self.acquire(self.worker_id))
            except (DriverException, NoHostAvailable) as e:
                # Retried next tick; the TTL spans three renewal intervals
                logger.warning(
                    "worker_id_renew_failed", worker_id=self.worker_id, error=str(e)
                )

    def start(self, generator: SnowflakeIdGenerator) -> None:
        """Renew in the background until ``release``."""
        self._renewal = asyncio.create_task(
            self.keep_alive(generator), name="worker_id_lease"
        )

    async def release(self) -> None:
        """Stop renewing and free the worker id for other processes."""
        if self._renewal is not None:
            self._renewal.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._renewal
            self._renewal = None
        if self.worker_id is None:
            return
        await self.session.aexecute(self._release, [self.worker_id, self.owner])
        logger.info("worker_id_released", worker_id=self.worker_id)
        self.worker_id = None
