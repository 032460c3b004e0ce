"""Human-readable order identifier allocation."""

import logging
from datetime import datetime, timezone

from supabase import Client

from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

ORDER_COUNTER_ID = "order_counter"


def format_order_id(year: int, sequence: int) -> str:
    """Format an order id, e.g. ``#ORD-2026-00042``.

    Sequences past 99999 keep all their digits.
    """
    return f"#ORD-{year}-{sequence:05d}"


class OrderIdAllocator:
    """Allocates sequential order ids from a single database counter.

    The increment runs as one atomic statement in Postgres
    (``increment_order_counter``), so concurrent callers never receive the
    same sequence value. The sequence is global, not per year; the year
    in the id is the allocation year.
    """

    RPC = "increment_order_counter"

    def __init__(self, client: Client | None = None, counter_id: str = ORDER_COUNTER_ID) -> None:
        """Initialize order id allocator.

        Args:
            client: Optional Supabase client for testing.
            counter_id: Row of the counters table to increment.
        """
        self.client = client or get_supabase_client()
        self.counter_id = counter_id

    async def next_sequence(self) -> int:
        """Atomically increment the counter and return the new value."""
        response = self.client.rpc(self.RPC, {"counter_id": self.counter_id}).execute()
        if response is None or response.data is None:
            raise RuntimeError(f"Order counter {self.counter_id} did not return a value")
        return int(response.data)

    async def next_order_id(self, now: datetime | None = None) -> str:
        """Allocate the next order id.

        Args:
            now: Allocation time; defaults to the current UTC time.

        Returns:
            str: A new, never-before-issued order id.
        """
        sequence = await self.next_sequence()
        year = (now or datetime.now(timezone.utc)).year
        order_id = format_order_id(year, sequence)
        logger.debug("Allocated order id %s", order_id)
        return order_id


def normalize_order_id(value: str) -> str:
    """Accept an order id with or without its leading ``#``."""
    value = value.strip()
    return value if value.startswith("#") else f"#{value}"
