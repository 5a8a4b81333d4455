"""
Totalization of raw segment flow records into canonical records.

A calculation run may produce several raw records for one segment (its own
single-hop record plus any distribution allocations). They are summed into one
record per segment and written to the store inside a single transaction.
"""
import logging
from typing import Dict, List

from gasflow.data_structures import Segment, SegmentFlow

logger = logging.getLogger(__name__)

def totalize_flows(segments: List[Segment], raw_flows: List[SegmentFlow]) -> List[SegmentFlow]:
    """
    Sum raw flow records per segment.

    Args:
        segments: Segments of the run, in output order
        raw_flows: Raw records produced during the run

    Returns:
        List[SegmentFlow]: One record per segment that has raw records, dated with
        the flow date of its first raw record. Segments without raw records are skipped.
    """
    by_segment: Dict[int, List[SegmentFlow]] = {}
    for flow in raw_flows:
        by_segment.setdefault(flow.segment_id, []).append(flow)

    totals = []
    for segment in segments:
        records = by_segment.get(segment.id)
        if not records:
            continue

        totals.append(SegmentFlow(
            segment_id=segment.id,
            start_point_id=segment.start_point_id,
            end_point_id=segment.end_point_id,
            flow_date=records[0].flow_date,
            volume_from_prev_point=sum(r.volume_from_prev_point for r in records),
            volume_change=sum(r.volume_change for r in records),
            volume_pass_thru=sum(r.volume_pass_thru for r in records)
        ))

    logger.debug("Totalized %d raw records into %d segment flows", len(raw_flows), len(totals))
    return totals

def persist_flows(store, flows: List[SegmentFlow]) -> List[SegmentFlow]:
    """
    Upsert totalized flows as canonical records in one store transaction.

    Either all records are written or, on error, none are.
    """
    with store.transaction():
        stored = [store.upsert_flow(flow) for flow in flows]

    logger.debug("Persisted %d segment flows", len(stored))
    return stored
