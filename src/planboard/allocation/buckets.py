"""Daily production buckets.

Turns an order quantity into a day-by-day production plan (optionally following
a learning curve) and rates how booked each line/day bucket is. The plan length
is what gives an order-block its duration on the timeline.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass


BUCKET_OPEN = "Open"
BUCKET_PARTIAL = "Partially Booked"
BUCKET_FULL = "Full"
BUCKET_OVERBOOKED = "Overbooked"


@dataclass(frozen=True)
class CurvePoint:
    day: int  # 1-based production day
    efficiency: float  # percent, may exceed 100


@dataclass(frozen=True)
class LearningCurve:
    points: tuple[CurvePoint, ...]
    smv: float  # standard minute value per unit
    working_minutes_per_day: float
    operators: int
    name: str | None = None


@dataclass(frozen=True)
class DailyOutput:
    day_offset: int
    efficiency: float
    capacity: float


@dataclass(frozen=True)
class BucketSegment:
    day_offset: int
    planned_qty: float
    cumulative_qty: float
    efficiency: float


@dataclass(frozen=True)
class BucketPlan:
    segments: tuple[BucketSegment, ...]
    remaining: float

    @property
    def duration_days(self) -> int:
        """Days from the first to the last planned day (inclusive), 1 when empty."""
        if not self.segments:
            return 1
        return self.segments[-1].day_offset - self.segments[0].day_offset + 1

    @property
    def planned(self) -> float:
        return self.segments[-1].cumulative_qty if self.segments else 0.0

    @property
    def is_complete(self) -> bool:
        return self.remaining <= 0


@dataclass(frozen=True)
class BucketRow:
    line_id: str
    day_offset: int
    capacity: float
    planned: float
    bookings: tuple[tuple[str, float], ...]

    @property
    def balance(self) -> float:
        return self.capacity - self.planned

    @property
    def status(self) -> str:
        return bucket_status(self.planned, self.capacity)


def efficiency_for_day(day: int, points: Iterable[CurvePoint]) -> float:
    pts = sorted(points, key=lambda p: p.day)
    if not pts:
        return 0.0

    for p in pts:
        if p.day == day:
            return float(p.efficiency)

    if day < pts[0].day:
        return float(pts[0].efficiency)
    if day > pts[-1].day:
        return float(pts[-1].efficiency)

    for p1, p2 in zip(pts, pts[1:]):
        if p1.day < day < p2.day:
            span = p2.day - p1.day
            eff = p1.efficiency + (p2.efficiency - p1.efficiency) / span * (day - p1.day)
            return round(eff, 2)

    return float(pts[-1].efficiency)


def daily_output(curve: LearningCurve, days: int) -> list[DailyOutput]:
    """Expected units per day for the first `days` production days."""
    valid_smv = curve.smv is not None and curve.smv > 0
    out: list[DailyOutput] = []
    for offset in range(max(0, days)):
        eff = efficiency_for_day(offset + 1, curve.points)
        cap = 0.0
        if valid_smv:
            cap = (eff / 100.0) * curve.operators * curve.working_minutes_per_day / curve.smv
        out.append(DailyOutput(day_offset=offset, efficiency=round(eff, 2), capacity=round(cap, 2)))
    return out


def plan_quantity(
    quantity: float,
    *,
    max_days: int,
    curve: LearningCurve | None = None,
    daily_capacity: float | None = None,
) -> BucketPlan:
    """Spread `quantity` over consecutive days.

    With a curve, each day produces what the curve allows (capped by
    `daily_capacity` when given). Without one, the quantity is spread evenly over
    `max_days`, never above `daily_capacity`.
    """
    if max_days < 1:
        raise ValueError(f"max_days must be >= 1 (got {max_days!r})")
    if quantity is None or quantity <= 0:
        raise ValueError(f"quantity must be > 0 (got {quantity!r})")

    if curve is not None and curve.smv and curve.smv > 0:
        potential = daily_output(curve, max_days)
    else:
        default_daily = daily_capacity if daily_capacity else quantity
        avg = min(default_daily, max(1, round(quantity / max_days)), quantity)
        potential = [DailyOutput(day_offset=i, efficiency=100.0, capacity=float(round(avg))) for i in range(max_days)]

    segments: list[BucketSegment] = []
    cumulative = 0.0
    for day in potential:
        if cumulative >= quantity:
            break
        cap = day.capacity if daily_capacity is None else min(day.capacity, daily_capacity)
        qty = min(cap, quantity - cumulative)
        if qty <= 0:
            continue
        cumulative += qty
        segments.append(
            BucketSegment(
                day_offset=day.day_offset,
                planned_qty=qty,
                cumulative_qty=cumulative,
                efficiency=day.efficiency,
            )
        )

    return BucketPlan(segments=tuple(segments), remaining=max(0.0, quantity - cumulative))


def bucket_status(planned: float, capacity: float) -> str:
    if planned <= 0:
        return BUCKET_OPEN
    if planned >= capacity:
        return BUCKET_OVERBOOKED if planned > capacity else BUCKET_FULL
    return BUCKET_PARTIAL


def daily_buckets(
    plans: Mapping[str, Iterable[tuple[str, int, BucketPlan]]],
    capacities: Mapping[str, float],
    *,
    days: int,
) -> list[BucketRow]:
    """Line/day booking rows for the first `days` units of the window.

    Args:
        plans: line_id -> (order_id, start day offset, plan) for each booked order.
        capacities: line_id -> units per day.
    """
    rows: list[BucketRow] = []
    for line_id, cap in capacities.items():
        per_day: dict[int, list[tuple[str, float]]] = {}
        for order_id, start, plan in plans.get(line_id, ()):
            for seg in plan.segments:
                d = start + seg.day_offset
                if 0 <= d < days:
                    per_day.setdefault(d, []).append((order_id, seg.planned_qty))
        for d in range(days):
            bookings = tuple(per_day.get(d, ()))
            rows.append(
                BucketRow(
                    line_id=line_id,
                    day_offset=d,
                    capacity=float(cap),
                    planned=sum(q for _, q in bookings),
                    bookings=bookings,
                )
            )
    return rows
