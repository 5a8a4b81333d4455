"""
Net volume classification per point.

Receipt points are sources and report the sum of their receipt readings as a
positive volume. Delivery points are sinks; their readings are positive
magnitudes and are negated. Compressor stations carry no declared net volume.
"""
import logging
from typing import Dict, List

from gasflow.data_structures import DateLike, Point, PointType, VolumeType, day_range

logger = logging.getLogger(__name__)


def classify_volume(point: Point, start: DateLike, end: DateLike, provider) -> float:
    """
    Signed net volume of a point over the days of [start, end).

    Args:
        point: Point to classify
        start: First day of the range
        end: Day after the last day of the range
        provider: Object with get_point_volume(point_id, date, volume_type)

    Returns:
        float: Positive for receipts, negative for deliveries, 0 for compressor stations
    """
    match point.point_type:
        case PointType.RECEIPT:
            return sum(provider.get_point_volume(point.id, day, VolumeType.RECEIPT)
                       for day in day_range(start, end))
        case PointType.DELIVERY:
            return -sum(provider.get_point_volume(point.id, day, VolumeType.DELIVERY)
                        for day in day_range(start, end))
        case _:
            return 0.0


def classify_volumes(points: List[Point], start: DateLike, end: DateLike, provider) -> Dict[int, float]:
    """Signed net volume of every point, keyed by point id."""
    volumes = {point.id: classify_volume(point, start, end, provider) for point in points}
    logger.debug("Classified volumes for %d points", len(volumes))
    return volumes
