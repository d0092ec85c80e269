"""
Tests for the SQL repositories on SQLite.
"""

import pytest
from datetime import datetime, timedelta, timezone

from order_outbox.core.domain import (
    CustomerId,
    Order,
    OrderId,
    OrderItem,
    OrderStatus,
    OutboxEvent,
    OutboxEventId,
    OutboxEventStatus,
    ProductId,
)
from order_outbox.core.errors import RepositoryError


def _order(customer="customer_1", minutes_ago=0) -> Order:
    created = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
    return Order(
        id=OrderId.create(),
        customer_id=CustomerId(customer),
        items=[OrderItem(ProductId("product_1"), "Mug", 3, 4.25)],
        status=OrderStatus.PENDING,
        created_at=created,
        updated_at=created,
    )


def _event(aggregate="order_1", event_type="OrderCreated", minutes_ago=0) -> OutboxEvent:
    created = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
    return OutboxEvent(
        id=OutboxEventId.create(),
        aggregate_id=OrderId(aggregate),
        event_type=event_type,
        payload={"orderId": aggregate},
        status=OutboxEventStatus.PENDING,
        created_at=created,
        updated_at=created,
    )


class TestSqlOrderRepository:
    """Test order persistence."""

    @pytest.mark.asyncio
    async def test_save_and_find(self, order_repository):
        order = _order()
        assert (await order_repository.save(order)).is_ok()

        found = (await order_repository.find_by_id(str(order.id))).unwrap()

        assert found.to_persistence() == order.to_persistence()
        assert found.total_amount == pytest.approx(12.75)

    @pytest.mark.asyncio
    async def test_find_missing_is_none(self, order_repository):
        assert (await order_repository.find_by_id("order_missing")).unwrap() is None

    @pytest.mark.asyncio
    async def test_duplicate_save(self, order_repository):
        order = _order()
        await order_repository.save(order)

        assert (await order_repository.save(order)).error == RepositoryError.DUPLICATE_KEY

    @pytest.mark.asyncio
    async def test_update(self, order_repository):
        order = _order()
        await order_repository.save(order)
        order.confirm()
        order.touch()

        assert (await order_repository.update(order)).is_ok()

        found = (await order_repository.find_by_id(str(order.id))).unwrap()
        assert found.status == OrderStatus.CONFIRMED
        assert found.updated_at == order.updated_at

    @pytest.mark.asyncio
    async def test_update_missing(self, order_repository):
        assert (await order_repository.update(_order())).error == RepositoryError.NOT_FOUND

    @pytest.mark.asyncio
    async def test_update_with_matching_status(self, order_repository):
        """The write goes through while the row still has the expected status."""
        order = _order()
        await order_repository.save(order)
        order.confirm()

        result = await order_repository.update(order, expected_status=OrderStatus.PENDING)

        assert result.is_ok()
        found = (await order_repository.find_by_id(str(order.id))).unwrap()
        assert found.status == OrderStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_update_with_stale_status_conflicts(self, order_repository):
        """A copy loaded before another write cannot overwrite that write."""
        order = _order()
        await order_repository.save(order)
        stale = (await order_repository.find_by_id(str(order.id))).unwrap()

        order.confirm()
        await order_repository.update(order, expected_status=OrderStatus.PENDING)
        stale.cancel()

        result = await order_repository.update(stale, expected_status=OrderStatus.PENDING)

        assert result.error == RepositoryError.CONFLICT
        found = (await order_repository.find_by_id(str(order.id))).unwrap()
        assert found.status == OrderStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_update_missing_with_expected_status(self, order_repository):
        """Zero rows with an expected status reads as a conflict."""
        result = await order_repository.update(_order(), expected_status=OrderStatus.PENDING)
        assert result.error == RepositoryError.CONFLICT

    @pytest.mark.asyncio
    async def test_delete(self, order_repository):
        order = _order()
        await order_repository.save(order)

        assert (await order_repository.delete(str(order.id))).is_ok()
        assert (await order_repository.delete(str(order.id))).error == RepositoryError.NOT_FOUND

    @pytest.mark.asyncio
    async def test_find_by_customer(self, order_repository):
        first, second, other = _order(minutes_ago=2), _order(minutes_ago=1), _order("customer_2")
        for order in (second, other, first):
            await order_repository.save(order)

        found = (await order_repository.find_by_customer_id("customer_1")).unwrap()

        assert [o.id for o in found] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_malformed_row(self, db, order_repository):
        await db.execute(
            "INSERT INTO orders (id, customer_id, items, total_amount, status, created_at, updated_at) "
            "VALUES ($1, $2, $3, $4, $5, $6, $7)",
            "order_bad", "customer_1", "[]", 0.0, "LOST",
            "2026-01-01T00:00:00.000000+00:00", "2026-01-01T00:00:00.000000+00:00",
        )

        assert (await order_repository.find_by_id("order_bad")).error == RepositoryError.VALIDATION_ERROR


class TestSqlOutboxEventRepository:
    """Test outbox ledger persistence."""

    @pytest.mark.asyncio
    async def test_save_and_find(self, outbox_repository):
        event = _event()
        await outbox_repository.save(event)

        found = (await outbox_repository.find_by_id(str(event.id))).unwrap()

        assert found.to_persistence() == event.to_persistence()

    @pytest.mark.asyncio
    async def test_duplicate_save(self, outbox_repository):
        event = _event()
        await outbox_repository.save(event)
        assert (await outbox_repository.save(event)).error == RepositoryError.DUPLICATE_KEY

    @pytest.mark.asyncio
    async def test_pending_oldest_first_with_limit(self, outbox_repository):
        newest, oldest, middle = _event(minutes_ago=1), _event(minutes_ago=10), _event(minutes_ago=5)
        for event in (newest, oldest, middle):
            await outbox_repository.save(event)
        done = _event(minutes_ago=20)
        done.mark_as_processed()
        await outbox_repository.save(done)

        pending = (await outbox_repository.find_pending_events(limit=2)).unwrap()

        assert [e.id for e in pending] == [oldest.id, middle.id]

    @pytest.mark.asyncio
    async def test_update_persists_outcome(self, outbox_repository):
        event = _event()
        await outbox_repository.save(event)
        event.abandon("broker down")

        assert (await outbox_repository.update(event)).is_ok()

        found = (await outbox_repository.find_by_id(str(event.id))).unwrap()
        assert found.status == OutboxEventStatus.FAILED
        assert found.retry_count == 1
        assert found.failure_reason == "broker down"
        assert found.abandoned_at == event.abandoned_at

    @pytest.mark.asyncio
    async def test_update_missing(self, outbox_repository):
        assert (await outbox_repository.update(_event())).error == RepositoryError.NOT_FOUND

    @pytest.mark.asyncio
    async def test_mark_as_failed_increments(self, outbox_repository):
        event = _event()
        await outbox_repository.save(event)

        await outbox_repository.mark_as_failed(str(event.id), "timeout")
        await outbox_repository.mark_as_failed(str(event.id), "timeout")

        found = (await outbox_repository.find_by_id(str(event.id))).unwrap()
        assert found.status == OutboxEventStatus.FAILED
        assert found.retry_count == 2

    @pytest.mark.asyncio
    async def test_failure_reason_same_on_both_write_paths(self, outbox_repository):
        """A long reason is stored in full whether written directly or through update."""
        reason = "PUBLISH_FAILED: " + "broker timeout " * 60
        direct, via_aggregate = _event(), _event()
        await outbox_repository.save(direct)
        await outbox_repository.save(via_aggregate)

        await outbox_repository.mark_as_failed(str(direct.id), reason)
        via_aggregate.mark_as_failed(reason)
        await outbox_repository.update(via_aggregate)

        stored_direct = (await outbox_repository.find_by_id(str(direct.id))).unwrap()
        stored_update = (await outbox_repository.find_by_id(str(via_aggregate.id))).unwrap()
        assert len(reason) > 500
        assert stored_direct.failure_reason == stored_update.failure_reason == reason.strip()

    @pytest.mark.asyncio
    async def test_mark_as_processed(self, outbox_repository):
        event = _event()
        await outbox_repository.save(event)

        assert (await outbox_repository.mark_as_processed(str(event.id))).is_ok()

        found = (await outbox_repository.find_by_id(str(event.id))).unwrap()
        assert found.status == OutboxEventStatus.PROCESSED
        assert found.processed_at is not None

    @pytest.mark.asyncio
    async def test_mark_missing(self, outbox_repository):
        assert (await outbox_repository.mark_as_processed("nope")).error == RepositoryError.NOT_FOUND
        assert (await outbox_repository.mark_as_failed("nope", "x")).error == RepositoryError.NOT_FOUND

    @pytest.mark.asyncio
    async def test_find_retryable(self, outbox_repository):
        under = _event(minutes_ago=3)
        under.mark_as_failed("timeout")
        exhausted = _event(minutes_ago=2)
        for _ in range(3):
            exhausted.mark_as_failed("timeout")
        abandoned = _event(minutes_ago=1)
        abandoned.abandon("no topic")
        for event in (under, exhausted, abandoned, _event()):
            await outbox_repository.save(event)

        retryable = (await outbox_repository.find_retryable(max_retries=3)).unwrap()

        assert [e.id for e in retryable] == [under.id]

    @pytest.mark.asyncio
    async def test_find_by_aggregate(self, outbox_repository):
        first, second = _event("order_a", minutes_ago=2), _event("order_a", "OrderConfirmed", minutes_ago=1)
        for event in (second, first, _event("order_b")):
            await outbox_repository.save(event)

        found = (await outbox_repository.find_by_aggregate_id("order_a")).unwrap()

        assert [e.event_type for e in found] == ["OrderCreated", "OrderConfirmed"]

    @pytest.mark.asyncio
    async def test_counts(self, outbox_repository):
        processed = _event()
        processed.mark_as_processed()
        abandoned = _event(event_type="OrderRefunded")
        abandoned.abandon("no topic")
        for event in (processed, abandoned, _event()):
            await outbox_repository.save(event)

        assert (await outbox_repository.count_by_status()).unwrap() == {
            "PENDING": 1, "PROCESSED": 1, "FAILED": 1,
        }
        assert (await outbox_repository.count_abandoned()).unwrap() == {"OrderRefunded": 1}

    @pytest.mark.asyncio
    async def test_counts_empty(self, outbox_repository):
        assert (await outbox_repository.count_by_status()).unwrap() == {
            "PENDING": 0, "PROCESSED": 0, "FAILED": 0,
        }

    @pytest.mark.asyncio
    async def test_delete(self, outbox_repository):
        event = _event()
        await outbox_repository.save(event)
        assert (await outbox_repository.delete(str(event.id))).is_ok()
        assert (await outbox_repository.find_by_id(str(event.id))).unwrap() is None

    @pytest.mark.asyncio
    async def test_find_by_status(self, outbox_repository):
        processed, pending = _event(minutes_ago=2), _event(minutes_ago=1)
        processed.mark_as_processed()
        for event in (processed, pending):
            await outbox_repository.save(event)

        found = (await outbox_repository.find_by_status(OutboxEventStatus.PROCESSED)).unwrap()

        assert [str(e.id) for e in found] == [str(processed.id)]

    @pytest.mark.asyncio
    async def test_find_abandoned_excludes_retryable(self, outbox_repository):
        retryable, abandoned = _event(minutes_ago=2), _event(minutes_ago=1)
        retryable.mark_as_failed("timeout")
        abandoned.abandon("no topic")
        for event in (retryable, abandoned):
            await outbox_repository.save(event)

        found = (await outbox_repository.find_abandoned()).unwrap()

        assert [str(e.id) for e in found] == [str(abandoned.id)]
