"""
Capacity evaluation of segment flows.

Metrics are derived on demand from a flow record and the segment capacity and
are never stored with the flow.
"""
from dataclasses import dataclass
from enum import Enum

from gasflow.data_structures import Segment, SegmentFlow
from gasflow.units import VolumeUnit

HIGH_USAGE_PERCENT = 90.0
MODERATE_USAGE_PERCENT = 75.0


class CapacityStatus(str, Enum):
    OVER_CAPACITY = 'OVER CAPACITY'
    HIGH_USAGE = 'HIGH USAGE'
    MODERATE_USAGE = 'MODERATE USAGE'
    NORMAL = 'NORMAL'

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CapacityEvaluation:
    """Usage of a segment's capacity by one flow"""
    actual_flow: float
    capacity: float
    usage_percentage: float
    over_capacity: bool
    available_capacity: float
    status: CapacityStatus


def evaluate_capacity(flow: SegmentFlow, capacity: float) -> CapacityEvaluation:
    """
    Evaluate a flow against a segment capacity expressed in the same unit.

    A capacity of 0 yields 0% usage; any positive flow through it is still over
    capacity. Thresholds are strict: exactly 90% is MODERATE USAGE and exactly
    100% is HIGH USAGE.
    """
    actual_flow = flow.actual_flow
    usage = actual_flow / capacity * 100 if capacity > 0 else 0.0
    over_capacity = actual_flow > capacity

    if over_capacity:
        status = CapacityStatus.OVER_CAPACITY
    elif usage > HIGH_USAGE_PERCENT:
        status = CapacityStatus.HIGH_USAGE
    elif usage > MODERATE_USAGE_PERCENT:
        status = CapacityStatus.MODERATE_USAGE
    else:
        status = CapacityStatus.NORMAL

    return CapacityEvaluation(
        actual_flow=actual_flow,
        capacity=capacity,
        usage_percentage=usage,
        over_capacity=over_capacity,
        available_capacity=max(0.0, capacity - actual_flow),
        status=status
    )

def segment_capacity(segment: Segment, volume_unit: VolumeUnit | str = VolumeUnit.MCF) -> float:
    """Capacity of a segment converted to the volume unit of the readings."""
    return VolumeUnit.convert(segment.capacity, segment.capacity_unit, volume_unit)

def evaluate_segment(flow: SegmentFlow, segment: Segment,
                     volume_unit: VolumeUnit | str = VolumeUnit.MCF) -> CapacityEvaluation:
    return evaluate_capacity(flow, segment_capacity(segment, volume_unit))
