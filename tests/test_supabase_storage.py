"""Tests for Supabase storage query building and conditional writes."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from talentpay.errors import DuplicateOrderError, InsufficientBalance, StorageConflictError
from talentpay.orders.models import Order
from talentpay.storage.supabase import SupabaseCommerceStorage


class FakeQuery:
    """Records a postgrest call chain; each execute() pops the next response.

    A response that is an Exception instance is raised instead.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def execute(self):
        self.calls.append(("execute", (), {}))
        response = self.responses.pop(0) if self.responses else []
        if isinstance(response, Exception):
            raise response
        return SimpleNamespace(data=response)

    def called(self, name):
        return [args for call, args, _ in self.calls if call == name]


def make_storage(**tables):
    client = MagicMock()
    client.table.side_effect = lambda name: tables.setdefault(name, FakeQuery())
    return SupabaseCommerceStorage(client, max_attempts=3), tables


def order_row(**overrides):
    row = {
        "id": "o1",
        "campaign_id": "c1",
        "talent_id": "t1",
        "founder_id": "f1",
        "payout": "100.00",
        "status": "review_submitted",
        "version": 4,
        "campaign_title": "Serum",
        "review_media": [{"url": "https://x/a.jpg", "type": "image"}],
        "review_submitted_at": "2026-03-01T10:00:00Z",
        "created_at": "2026-02-20T08:00:00+00:00",
        "updated_at": "2026-03-01T10:00:00+00:00",
    }
    row.update(overrides)
    return row


class TestOrders:
    def test_get_order_parses_row(self):
        storage, _ = make_storage(orders=FakeQuery([[order_row()]]))

        order = storage.get_order("o1")

        assert order.payout == Decimal("100.00")
        assert order.version == 4
        assert order.review_submission.media[0].url == "https://x/a.jpg"

    def test_get_missing_order(self):
        storage, _ = make_storage(orders=FakeQuery([[]]))
        assert storage.get_order("nope") is None

    def test_compare_and_set_filters_on_status_and_version(self):
        storage, tables = make_storage(orders=FakeQuery([[order_row(status="completed", version=5)]]))
        order = Order.from_dict(order_row(status="completed", version=5))

        assert storage.compare_and_set_order(order, "review_submitted", 4)

        query = tables["orders"]
        update_data = query.called("update")[0][0]
        assert "id" not in update_data
        assert update_data["status"] == "completed"
        assert query.called("eq") == [("id", "o1"), ("status", "review_submitted"), ("version", 4)]

    def test_compare_and_set_miss(self):
        storage, _ = make_storage(orders=FakeQuery([[]]))
        order = Order.from_dict(order_row(status="completed", version=5))

        assert not storage.compare_and_set_order(order, "review_submitted", 4)

    def test_unique_violation_maps_to_duplicate(self):
        error = Exception('duplicate key value violates unique constraint "orders_campaign_talent_key" (23505)')
        storage, _ = make_storage(orders=FakeQuery([[], error]))
        order = Order.from_dict(order_row(status="pending_shipment", review_media=None))

        with pytest.raises(DuplicateOrderError):
            storage.save_order(order)

    def test_other_insert_errors_propagate(self):
        storage, _ = make_storage(orders=FakeQuery([[], ConnectionError("reset")]))
        order = Order.from_dict(order_row(status="pending_shipment", review_media=None))

        with pytest.raises(ConnectionError):
            storage.save_order(order)


class TestAdjustBalance:
    def test_retries_after_lost_race(self):
        profiles = FakeQuery(
            [
                [{"id": "p", "wallet_balance": "100.00"}],
                [],
                [{"id": "p", "wallet_balance": "95.00"}],
                [{"id": "p", "wallet_balance": "105.00"}],
            ]
        )
        storage, _ = make_storage(profiles=profiles)

        assert storage.adjust_balance("p", "wallet_balance", Decimal("10")) == Decimal("105.00")
        assert profiles.called("update") == [({"wallet_balance": "110.00"},), ({"wallet_balance": "105.00"},)]
        assert ("wallet_balance", "95.00") in profiles.called("eq")

    def test_gives_up_after_max_attempts(self):
        profiles = FakeQuery([[{"id": "p", "total_earnings": "10.00"}], []] * 3)
        storage, _ = make_storage(profiles=profiles)

        with pytest.raises(StorageConflictError):
            storage.adjust_balance("p", "total_earnings", Decimal("1"))

    def test_floor_checked_before_write(self):
        profiles = FakeQuery([[{"id": "p", "total_earnings": "30.00"}]])
        storage, _ = make_storage(profiles=profiles)

        with pytest.raises(InsufficientBalance):
            storage.adjust_balance("p", "total_earnings", Decimal("-50"), floor=Decimal("0"))
        assert profiles.called("update") == []
