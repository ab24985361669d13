"""
Human-readable order and payment numbers.

Numbers come from a counter row per sequence, bumped with
UPDATE ... RETURNING inside the caller's transaction, so two concurrent
promotions never get the same number and a rolled-back insert does not
burn one.
"""

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from dumpster_admin.core.config import settings
from dumpster_admin.core.logging import get_logger
from dumpster_admin.models.sequence import NumberSequence

logger = get_logger(__name__)

ORDER_SEQUENCE = "order"
PAYMENT_SEQUENCE = "payment"


def format_number(prefix: str, value: int) -> str:
    """ORD + 42 -> ORD-000042"""
    return f"{prefix}-{value:06d}"


class SequenceNumberGenerator:
    """Allocates sequential numbers in the session's current transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def next_value(self, name: str) -> int:
        value = await self._increment(name)
        if value is None:
            await self._ensure_row(name)
            value = await self._increment(name)
        if value is None:
            raise RuntimeError(f"Number sequence '{name}' could not be allocated")
        return value

    async def next(self, name: str, prefix: str) -> str:
        value = await self.next_value(name)
        number = format_number(prefix, value)
        logger.debug("Allocated number", extra={"sequence": name, "number": number})
        return number

    async def next_order_number(self) -> str:
        return await self.next(ORDER_SEQUENCE, settings.ORDER_NUMBER_PREFIX)

    async def next_payment_number(self) -> str:
        return await self.next(PAYMENT_SEQUENCE, settings.PAYMENT_NUMBER_PREFIX)

    async def _increment(self, name: str):
        result = await self.session.execute(
            update(NumberSequence)
            .where(NumberSequence.name == name)
            .values(value=NumberSequence.value + 1)
            .returning(NumberSequence.value)
        )
        return result.scalar_one_or_none()

    async def _ensure_row(self, name: str) -> None:
        """Create the counter row; a concurrent creator wins silently."""
        dialect = self.session.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        await self.session.execute(
            insert(NumberSequence)
            .values(name=name, value=0)
            .on_conflict_do_nothing(index_elements=["name"])
        )
