"""
Segment flow calculation and downstream distribution.

Each segment reports flow from its two direct endpoints only:

    volume_from_prev_point = |start volume|
    volume_change          = end volume
    volume_pass_thru       = max(0, |start volume| + end volume)

Compressor stations with several outgoing segments split their available
volume across those segments in proportion to the demand at each segment's
end point.
"""
import logging
from typing import Dict, List

from joblib import Parallel, delayed

from gasflow.data_structures import DateLike, Point, PointType, Segment, SegmentFlow
from gasflow.topology import NetworkTopology

logger = logging.getLogger(__name__)

def calculate_pass_through(volume_from_prev: float, volume_change: float) -> float:
    """Volume continuing through a segment; a delivery at the end point reduces it."""
    return max(0.0, volume_from_prev + volume_change)

def compute_segment_flow(segment: Segment, volumes: Dict[int, float], flow_date: DateLike) -> SegmentFlow:
    """Raw flow record of a segment from the volumes at its start and end points."""
    start_volume = volumes.get(segment.start_point_id, 0.0)
    end_volume = volumes.get(segment.end_point_id, 0.0)

    return SegmentFlow(
        segment_id=segment.id,
        start_point_id=segment.start_point_id,
        end_point_id=segment.end_point_id,
        flow_date=flow_date,
        volume_from_prev_point=abs(start_volume),
        volume_change=end_volume,
        volume_pass_thru=calculate_pass_through(abs(start_volume), end_volume)
    )

def compute_segment_flows(segments: List[Segment], volumes: Dict[int, float],
                          flow_date: DateLike, n_jobs: int = 1) -> List[SegmentFlow]:
    """
    Raw flow records for all segments, in segment order.

    Segments only read the shared volume map, so they can be computed in
    parallel threads when n_jobs is not 1.
    """
    if n_jobs == 1 or len(segments) < 2:
        return [compute_segment_flow(segment, volumes, flow_date) for segment in segments]

    return Parallel(n_jobs=n_jobs, backend='threading', verbose=0)(
        delayed(compute_segment_flow)(segment, volumes, flow_date) for segment in segments
    )

def distribute_flow(station: Point, downstream_segments: List[Segment],
                    volumes: Dict[int, float], available_volume: float) -> Dict[int, float]:
    """
    Split the available volume of a compressor station across its outgoing segments.

    Args:
        station: The compressor station point
        downstream_segments: Segments leaving the station
        volumes: Signed net volume per point id
        available_volume: Volume available at the station

    Returns:
        Dict[int, float]: Allocated volume per segment id. Allocations are
        proportional to the demand (absolute volume) at each segment's end point,
        or equal when there is no demand at all.
    """
    distribution = {}
    if not downstream_segments:
        return distribution

    demands = {s.id: abs(volumes.get(s.end_point_id, 0.0)) for s in downstream_segments}
    total_demand = sum(demands.values())

    if total_demand == 0:
        equal_share = available_volume / len(downstream_segments)
        for segment in downstream_segments:
            distribution[segment.id] = equal_share
    else:
        for segment in downstream_segments:
            distribution[segment.id] = available_volume * (demands[segment.id] / total_demand)

    logger.debug("Distributed %.6f volume from compressor station %d to %d segments",
                 available_volume, station.id, len(downstream_segments))

    return distribution

def distribution_flows(topology: NetworkTopology, volumes: Dict[int, float],
                       segment_flows: List[SegmentFlow], flow_date: DateLike) -> List[SegmentFlow]:
    """
    Raw flow records from one distribution pass over the network.

    For every compressor station with more than one outgoing segment, the volume
    passing through its incoming segments is distributed over the outgoing
    segments. Each allocation becomes a record carrying the allocated volume
    with no volume change at the end point, which the totalizer adds to the
    segment's own record.
    """
    pass_thru_by_segment = {}
    for flow in segment_flows:
        pass_thru_by_segment[flow.segment_id] = pass_thru_by_segment.get(flow.segment_id, 0.0) + flow.volume_pass_thru

    records = []
    for station in topology.points_of_type(PointType.COMPRESSOR_STATION):
        outgoing = topology.outgoing_segments(station.id)
        if len(outgoing) < 2:
            continue

        available = sum(pass_thru_by_segment.get(s.id, 0.0) for s in topology.incoming_segments(station.id))
        allocations = distribute_flow(station, outgoing, volumes, available)

        for segment in outgoing:
            allocated = allocations[segment.id]
            records.append(SegmentFlow(
                segment_id=segment.id,
                start_point_id=segment.start_point_id,
                end_point_id=segment.end_point_id,
                flow_date=flow_date,
                volume_from_prev_point=allocated,
                volume_change=0.0,
                volume_pass_thru=allocated
            ))

    return records
