"""
Tests for converting quotes into orders.
"""
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from dumpster_admin.core.exceptions import (
    InvalidDriverException,
    MissingDropoffException,
    QuoteAlreadyPromotedException,
    QuoteNotFoundException,
    ValidationException,
)
from dumpster_admin.models import Order, OrderStatus, Quote, QuoteStatus
from dumpster_admin.schemas.quote import QuotePromotionOverrides
from dumpster_admin.services.quote_promoter import QuotePromoter


class AcceptFailsPromoter(QuotePromoter):
    """Promoter whose quote status update hits a database error."""

    async def _mark_accepted(self, quote):
        raise OperationalError("UPDATE quotes", {}, Exception("database is locked"))


class TestPromote:
    """Tests for QuotePromoter.promote."""

    @pytest.mark.asyncio
    async def test_promote_copies_quote(self, db_session, make_quote):
        """Test that the order carries the quote's customer and service details."""
        quote = await make_quote(assigned_to="Ariel")

        order = await QuotePromoter(db_session).promote(quote.id)

        assert order.order_number == "ORD-000001"
        assert order.quote_id == quote.id
        assert order.status == OrderStatus.SCHEDULED
        assert order.first_name == "Carlos"
        assert order.email == "carlos@example.com"
        assert order.city == "Jupiter"
        assert order.dumpster_size == "15yd"
        assert order.dropoff_date == date(2026, 11, 5)
        assert order.dropoff_time == "09:00"
        assert order.scheduled_delivery_date == date(2026, 11, 5)
        assert order.assigned_to == "Ariel"
        assert order.quoted_price == Decimal("425.00")
        assert order.internal_notes == "Gate code 4411"

        stored = await db_session.get(Quote, quote.id, populate_existing=True)
        assert stored.status == QuoteStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_default_line_item_from_price(self, db_session, make_quote):
        """Test that a quote without items becomes one rental line at the quoted price."""
        quote = await make_quote()

        order = await QuotePromoter(db_session).promote(quote.id)

        assert len(order.line_items) == 1
        item = order.line_items[0]
        assert item.name == "Dumpster Rental"
        assert item.description == "15yd dumpster"
        assert item.quantity == 1
        assert item.total_price == Decimal("425.00")

    @pytest.mark.asyncio
    async def test_quote_line_items_used(self, db_session, make_quote):
        """Test that the quote's stored line items are copied in order."""
        quote = await make_quote(
            line_items=[
                {"name": "20yd Rental", "description": None, "quantity": 1, "unit_price": "400.00"},
                {"name": "Extra Ton", "description": "Over weight", "quantity": 2, "unit_price": "65.00"},
            ]
        )

        order = await QuotePromoter(db_session).promote(quote.id)

        assert [i.name for i in order.line_items] == ["20yd Rental", "Extra Ton"]
        assert [i.position for i in order.line_items] == [0, 1]
        assert order.line_items[1].total_price == Decimal("130.00")

    @pytest.mark.asyncio
    async def test_overrides_win(self, db_session, make_quote):
        """Test that admin edits replace quote values."""
        quote = await make_quote()
        overrides = QuotePromotionOverrides(
            first_name="Carla",
            dropoff_date=date(2026, 11, 9),
            dropoff_time="14:00",
            assigned_to="Other",
            quoted_price="500",
            driver_notes="Back gate",
            line_items=[{"name": "30yd Rental", "unit_price": "500.00"}],
        )

        order = await QuotePromoter(db_session).promote(quote.id, overrides)

        assert order.first_name == "Carla"
        assert order.last_name == "Diaz"
        assert order.dropoff_date == date(2026, 11, 9)
        assert order.dropoff_time == "14:00"
        assert order.assigned_to == "Other"
        assert order.quoted_price == Decimal("500.00")
        assert order.driver_notes == "Back gate"
        assert [i.name for i in order.line_items] == ["30yd Rental"]

    @pytest.mark.asyncio
    async def test_zero_price_override_kept(self, db_session, make_quote):
        """Test that an explicit zero price override is not replaced by the quote's price."""
        quote = await make_quote()

        order = await QuotePromoter(db_session).promote(quote.id, QuotePromotionOverrides(quoted_price="0"))

        assert order.quoted_price == Decimal("0.00")
        assert [i.unit_price for i in order.line_items] == [Decimal("0.00")]

    @pytest.mark.asyncio
    async def test_default_driver_when_unassigned(self, db_session, make_quote):
        """Test that unassigned quotes go to the default driver."""
        quote = await make_quote()

        order = await QuotePromoter(db_session, default_driver="Ariel").promote(quote.id)

        assert order.assigned_to == "Ariel"

    @pytest.mark.asyncio
    async def test_unknown_driver_rejected(self, db_session, make_quote):
        """Test that an assignee outside the roster is refused before any write."""
        quote = await make_quote()

        with pytest.raises(InvalidDriverException):
            await QuotePromoter(db_session).promote(quote.id, QuotePromotionOverrides(assigned_to="Bob"))

        orders = (await db_session.execute(select(Order))).scalars().all()
        assert orders == []

    @pytest.mark.asyncio
    async def test_missing_dropoff_date(self, db_session, make_quote):
        """Test that a quote without a dropoff date cannot be promoted."""
        quote = await make_quote(dropoff_date=None)

        with pytest.raises(MissingDropoffException) as exc_info:
            await QuotePromoter(db_session).promote(quote.id)

        assert exc_info.value.message == "Dropoff date is required to create an order"
        assert exc_info.value.details == {"field": "dropoff_date"}

    @pytest.mark.asyncio
    async def test_missing_dropoff_time(self, db_session, make_quote):
        """Test that a quote without a dropoff time cannot be promoted."""
        quote = await make_quote(dropoff_time=None)

        with pytest.raises(MissingDropoffException) as exc_info:
            await QuotePromoter(db_session).promote(quote.id)

        assert exc_info.value.details == {"field": "dropoff_time"}

    @pytest.mark.asyncio
    async def test_override_supplies_dropoff(self, db_session, make_quote):
        """Test that the admin can fill in a missing dropoff at promotion."""
        quote = await make_quote(dropoff_date=None, dropoff_time=None)
        overrides = QuotePromotionOverrides(dropoff_date=date(2026, 12, 1), dropoff_time="07:30")

        order = await QuotePromoter(db_session).promote(quote.id, overrides)

        assert order.dropoff_date == date(2026, 12, 1)

    @pytest.mark.asyncio
    async def test_unknown_quote(self, db_session):
        """Test that a missing quote raises not found."""
        with pytest.raises(QuoteNotFoundException):
            await QuotePromoter(db_session).promote(uuid4())

    @pytest.mark.asyncio
    async def test_declined_quote_rejected(self, db_session, make_quote):
        """Test that declined quotes cannot become orders."""
        quote = await make_quote(status=QuoteStatus.DECLINED)

        with pytest.raises(ValidationException):
            await QuotePromoter(db_session).promote(quote.id)

    @pytest.mark.asyncio
    async def test_second_promotion_rejected(self, db_session, make_quote):
        """Test that a quote converts to at most one order."""
        quote = await make_quote()
        promoter = QuotePromoter(db_session)
        order = await promoter.promote(quote.id)

        with pytest.raises(QuoteAlreadyPromotedException) as exc_info:
            await promoter.promote(quote.id)

        assert exc_info.value.details["order_number"] == order.order_number
        orders = (await db_session.execute(select(Order))).scalars().all()
        assert len(orders) == 1

    @pytest.mark.asyncio
    async def test_order_numbers_increase(self, db_session, make_quote):
        """Test that consecutive promotions get consecutive numbers."""
        first = await make_quote()
        second = await make_quote(email="other@example.com")
        promoter = QuotePromoter(db_session)

        a = await promoter.promote(first.id)
        b = await promoter.promote(second.id)

        assert (a.order_number, b.order_number) == ("ORD-000001", "ORD-000002")


class TestPartialFailure:
    """The order commit and the quote status commit are separate."""

    @pytest.mark.asyncio
    async def test_order_kept_when_quote_update_fails(self, db_session, session_factory, make_quote):
        """Test that the order survives a failed quote status update."""
        quote = await make_quote()

        order = await AcceptFailsPromoter(db_session).promote(quote.id)

        assert order.order_number == "ORD-000001"
        async with session_factory() as fresh:
            stored_order = await fresh.get(Order, order.id)
            stored_quote = await fresh.get(Quote, quote.id)
            assert stored_order is not None
            assert stored_order.quote_id == quote.id
            assert stored_quote.status == QuoteStatus.QUOTED

    @pytest.mark.asyncio
    async def test_reconvert_blocked_after_partial_failure(self, db_session, make_quote):
        """Test that the existing order still blocks a second conversion."""
        quote = await make_quote()
        await AcceptFailsPromoter(db_session).promote(quote.id)

        with pytest.raises(QuoteAlreadyPromotedException):
            await QuotePromoter(db_session).promote(quote.id)
