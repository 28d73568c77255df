from datetime import timedelta

from decolide.engine.stall import STALL_THRESHOLD, days_in_stage, is_stalled, stalled_orders

from conftest import NOW


def test_threshold_is_three_days():
    assert STALL_THRESHOLD == timedelta(days=3)


def test_stalled_after_threshold(make_order):
    assert is_stalled(make_order(stage=2, entered_days_ago=5), NOW)
    assert not is_stalled(make_order(stage=2, entered_days_ago=1), NOW)


def test_exactly_threshold_is_not_stalled(make_order):
    assert not is_stalled(make_order(stage=3, entered_days_ago=3), NOW)
    assert is_stalled(make_order(stage=3, entered_days_ago=3.001), NOW)


def test_delivered_never_stalled(make_order):
    assert not is_stalled(make_order(stage=5, entered_days_ago=400, order_days_ago=500), NOW)


def test_order_received_can_stall(make_order):
    assert is_stalled(make_order(stage=0, entered_days_ago=4), NOW)


def test_custom_threshold(make_order):
    order = make_order(stage=1, entered_days_ago=2)
    assert is_stalled(order, NOW, threshold=timedelta(days=1))


def test_days_in_stage(make_order):
    assert days_in_stage(make_order(entered_days_ago=5.7), NOW) == 5
    # clock skew: entered "in the future"
    assert days_in_stage(make_order(entered_days_ago=-1), NOW) == 0


def test_stalled_orders_keeps_order(make_order):
    a = make_order(order_id="#1", stage=1, entered_days_ago=4)
    b = make_order(order_id="#2", stage=2, entered_days_ago=1)
    c = make_order(order_id="#3", stage=4, entered_days_ago=6)
    assert [o.id for o in stalled_orders([a, b, c], NOW)] == ["#1", "#3"]
