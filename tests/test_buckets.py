import pytest

from planboard.allocation.buckets import (
    BUCKET_FULL,
    BUCKET_OPEN,
    BUCKET_OVERBOOKED,
    BUCKET_PARTIAL,
    BucketPlan,
    CurvePoint,
    LearningCurve,
    bucket_status,
    daily_buckets,
    daily_output,
    efficiency_for_day,
    plan_quantity,
)


POINTS = (CurvePoint(day=1, efficiency=40), CurvePoint(day=3, efficiency=60), CurvePoint(day=5, efficiency=80))


@pytest.fixture()
def curve() -> LearningCurve:
    return LearningCurve(points=POINTS, smv=10, working_minutes_per_day=480, operators=10, name="basic")


@pytest.mark.parametrize(
    "day,expected",
    [(1, 40.0), (2, 50.0), (3, 60.0), (4, 70.0), (0, 40.0), (12, 80.0)],
)
def test_efficiency_for_day(day, expected):
    assert efficiency_for_day(day, POINTS) == expected


def test_efficiency_rounds_interpolation():
    pts = (CurvePoint(day=1, efficiency=50), CurvePoint(day=4, efficiency=60))
    assert efficiency_for_day(2, pts) == 53.33


def test_efficiency_without_points():
    assert efficiency_for_day(3, ()) == 0.0


def test_daily_output_follows_curve(curve):
    out = daily_output(curve, 3)
    assert [d.day_offset for d in out] == [0, 1, 2]
    assert [d.efficiency for d in out] == [40.0, 50.0, 60.0]
    assert [d.capacity for d in out] == [192.0, 240.0, 288.0]


def test_plan_quantity_with_curve(curve):
    plan = plan_quantity(500, max_days=10, curve=curve)
    assert [s.planned_qty for s in plan.segments] == [192.0, 240.0, 68.0]
    assert plan.segments[-1].cumulative_qty == 500
    assert plan.duration_days == 3
    assert plan.is_complete


def test_plan_quantity_with_curve_capped_by_line(curve):
    plan = plan_quantity(500, max_days=10, curve=curve, daily_capacity=200)
    assert [s.planned_qty for s in plan.segments] == [192.0, 200.0, 108.0]


def test_plan_quantity_spreads_evenly_without_curve():
    plan = plan_quantity(100, max_days=4)
    assert [s.planned_qty for s in plan.segments] == [25.0, 25.0, 25.0, 25.0]
    assert plan.planned == 100
    assert plan.duration_days == 4


def test_plan_quantity_reports_what_does_not_fit():
    plan = plan_quantity(100, max_days=4, daily_capacity=10)
    assert plan.planned == 40
    assert plan.remaining == 60
    assert not plan.is_complete


@pytest.mark.parametrize("qty,days", [(0, 5), (-1, 5), (10, 0)])
def test_plan_quantity_rejects_bad_input(qty, days):
    with pytest.raises(ValueError):
        plan_quantity(qty, max_days=days)


def test_empty_plan_lasts_one_day():
    assert BucketPlan(segments=(), remaining=0).duration_days == 1


@pytest.mark.parametrize(
    "planned,status",
    [(0, BUCKET_OPEN), (50, BUCKET_PARTIAL), (100, BUCKET_FULL), (120, BUCKET_OVERBOOKED)],
)
def test_bucket_status(planned, status):
    assert bucket_status(planned, 100) == status


def test_daily_buckets():
    plan = plan_quantity(100, max_days=4)
    rows = daily_buckets({"L1": [("O1", 1, plan)]}, {"L1": 30, "L2": 10}, days=3)

    l1 = [r for r in rows if r.line_id == "L1"]
    assert [r.planned for r in l1] == [0, 25.0, 25.0]
    assert [r.status for r in l1] == [BUCKET_OPEN, BUCKET_PARTIAL, BUCKET_PARTIAL]
    assert l1[1].bookings == (("O1", 25.0),)
    assert l1[1].balance == 5.0

    l2 = [r for r in rows if r.line_id == "L2"]
    assert len(l2) == 3
    assert all(r.status == BUCKET_OPEN for r in l2)
