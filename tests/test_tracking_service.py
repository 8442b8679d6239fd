"""Order lookup by id or order number."""

import uuid

import pytest

from app.core.lifecycle import OrderStatus
from app.services.tracking_service import OrderTrackingService, parse_order_id


@pytest.fixture
def tracking(order_repo) -> OrderTrackingService:
    return OrderTrackingService(order_repo)


def test_parse_order_id() -> None:
    order_id = uuid.uuid4()

    assert parse_order_id(str(order_id)) == order_id
    assert parse_order_id("NVS123456") is None


def test_resolve_by_order_number(tracking, order_repo, make_draft) -> None:
    created = order_repo.create(make_draft())

    found = tracking.resolve(created.order_number)

    assert found is not None
    assert found.id == created.id


def test_resolve_by_id(tracking, order_repo, make_draft) -> None:
    created = order_repo.create(make_draft())

    found = tracking.resolve(f"  {created.id}  ")

    assert found is not None
    assert found.order_number == created.order_number


def test_unknown_token_is_none(tracking, order_repo, make_draft) -> None:
    order_repo.create(make_draft())

    assert tracking.resolve("NVS000000") is None
    assert tracking.resolve(str(uuid.uuid4())) is None
    assert tracking.track("nope") is None


def test_blank_token_is_none(tracking) -> None:
    assert tracking.resolve("   ") is None
    assert tracking.track("") is None


def test_track_reflects_fresh_status(tracking, order_repo, make_draft) -> None:
    created = order_repo.create(make_draft())
    before = tracking.track(created.order_number)
    order_repo.set_order_status(created.id, OrderStatus.CONFIRMED)

    after = tracking.track(created.order_number)

    assert before.order_status == OrderStatus.PLACED
    assert after.order_status == OrderStatus.CONFIRMED
    assert after.status_label == "Confirmed"
    assert [step.active for step in after.timeline] == [False, True, False, False, False]
    assert after.can_cancel is True
    assert after.items[0].name == "Tomato"


def test_track_cancelled_order(tracking, order_repo, make_draft) -> None:
    created = order_repo.create(make_draft())
    order_repo.set_order_status(created.id, OrderStatus.CANCELLED)

    view = tracking.track(str(created.id))

    assert view.status_label == "Cancelled"
    assert view.timeline == []
    assert view.can_cancel is False
