"""
Metric Catalog

Closed taxonomy of the supported analytics metrics and their shape:
- money vs count
- range vs point-in-time reporting window
- whether the metric must be anchored to paid order items

The metric -> shape table is hard-coded. A metric that is not in the table is
unknown and must be rejected by the caller, never defaulted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union


class TimeShape(str, Enum):
    """Temporal shape of a metric's reporting window"""
    RANGE = "range"  # start_ts + end_ts
    POINT_IN_TIME = "point_in_time"  # end_ts only


class Metric(str, Enum):
    """Canonical metric names"""
    NET_REVENUE = "Net Revenue"
    GROSS_REVENUE = "Gross Revenue"
    TICKETS_SOLD = "Tickets Sold"
    RSVPS_RESERVED = "RSVPs (Reserved)"
    REFUND_AMOUNT = "Refund Amount"
    ACTIVE_EVENTS = "Active Events"
    CANCELLED_EVENTS = "Cancelled Events"


@dataclass(frozen=True)
class MetricShape:
    """Immutable shape attributes of a metric"""
    is_money: bool
    time_shape: TimeShape
    requires_order_item_anchor: bool


METRIC_SHAPES: Dict[Metric, MetricShape] = {
    Metric.NET_REVENUE: MetricShape(True, TimeShape.RANGE, True),
    Metric.GROSS_REVENUE: MetricShape(True, TimeShape.RANGE, True),
    Metric.REFUND_AMOUNT: MetricShape(True, TimeShape.RANGE, True),
    Metric.TICKETS_SOLD: MetricShape(False, TimeShape.RANGE, True),
    Metric.RSVPS_RESERVED: MetricShape(False, TimeShape.RANGE, False),
    Metric.CANCELLED_EVENTS: MetricShape(False, TimeShape.RANGE, False),
    Metric.ACTIVE_EVENTS: MetricShape(False, TimeShape.POINT_IN_TIME, False),
}

# Lookup by member name ("NET_REVENUE") and its CamelCase form ("NetRevenue")
_ALIASES: Dict[str, Metric] = {}
for _metric in Metric:
    _ALIASES[_metric.name] = _metric
    _ALIASES["".join(part.capitalize() for part in _metric.name.split("_"))] = _metric


def resolve_metric(metric: Union[Metric, str, None]) -> Optional[Metric]:
    """
    Resolve a metric identifier against the closed catalog.

    Accepts a Metric member, its canonical label ("Net Revenue"), its member
    name ("NET_REVENUE") or the CamelCase form ("NetRevenue").

    Returns:
        The Metric, or None when the identifier is unknown
    """
    if isinstance(metric, Metric):
        return metric
    if not isinstance(metric, str):
        return None
    try:
        return Metric(metric)
    except ValueError:
        return _ALIASES.get(metric)


def shape_of(metric: Metric) -> MetricShape:
    """Shape attributes for a known metric"""
    return METRIC_SHAPES[metric]


def money_metrics() -> FrozenSet[Metric]:
    return frozenset(m for m, shape in METRIC_SHAPES.items() if shape.is_money)


def order_item_anchored_metrics() -> FrozenSet[Metric]:
    return frozenset(m for m, shape in METRIC_SHAPES.items() if shape.requires_order_item_anchor)
