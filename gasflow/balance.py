"""
Receipt/delivery balance validation and alignment.

The balance compares the total receipt volume against the total delivery
magnitude with a fixed absolute tolerance that only absorbs rounding. Alignment
rescales delivery volumes so both totals match.
"""
import logging
from typing import Dict, List, Tuple

from gasflow.data_structures import Point, PointType

logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = 0.001

def balance_totals(volumes: Dict[int, float], points: List[Point]) -> Tuple[float, float]:
    """Total receipt volume and total delivery magnitude."""
    total_receipt = sum(volumes.get(p.id, 0.0) for p in points if p.point_type == PointType.RECEIPT)
    total_delivery = abs(sum(volumes.get(p.id, 0.0) for p in points if p.point_type == PointType.DELIVERY))
    return total_receipt, total_delivery

def validate_balance(volumes: Dict[int, float], points: List[Point]) -> bool:
    """Check that receipts and deliveries balance within BALANCE_TOLERANCE."""
    total_receipt, total_delivery = balance_totals(volumes, points)
    difference = abs(total_receipt - total_delivery)

    logger.debug("Volume balance check - Receipt: %.6f, Delivery: %.6f, Difference: %.6f",
                 total_receipt, total_delivery, difference)

    return difference <= BALANCE_TOLERANCE

def align_volumes(volumes: Dict[int, float], points: List[Point]) -> Dict[int, float]:
    """
    Rescale delivery volumes so that total delivery matches total receipt.

    Receipt and compressor station volumes are left untouched. The input is
    never modified.

    Args:
        volumes: Signed net volume per point id
        points: Points of the network

    Returns:
        Dict[int, float]: Aligned copy of the volumes
    """
    aligned = dict(volumes)
    total_receipt, total_delivery = balance_totals(volumes, points)

    if total_receipt == 0 or total_delivery == 0:
        logger.warning("Cannot align volumes: one total is zero (receipt %.6f, delivery %.6f)",
                       total_receipt, total_delivery)
        return aligned

    if abs(total_receipt - total_delivery) > BALANCE_TOLERANCE:
        ratio = total_receipt / total_delivery
        logger.debug("Adjusting delivery volumes by ratio: %.6f", ratio)

        for point in points:
            if point.point_type == PointType.DELIVERY and point.id in volumes:
                aligned[point.id] = volumes[point.id] * ratio

    return aligned
