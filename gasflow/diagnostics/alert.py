import logging

from gasflow.balance import BALANCE_TOLERANCE
from gasflow.capacity import CapacityStatus
from gasflow.diagnostics.diagnostics import DiagnosticTracker

logger = logging.getLogger(__name__)

def alert(tracker: DiagnosticTracker) -> None:
    """Alert if there are significant diagnostic issues."""
    if not tracker:
        return

    results = tracker.get_results()

    # Check receipt/delivery balance
    balance_df = results['balance']
    if not balance_df.empty:
        unbalanced = balance_df[~balance_df['balanced'].astype(bool)]
        if not unbalanced.empty:
            logger.warning("%d unbalanced calculation runs (max difference: %.6f)",
                           len(unbalanced), unbalanced['difference'].max())

    # Check compressor stations, the only points expected to balance
    consistency_df = results['consistency']
    if not consistency_df.empty:
        stations = consistency_df[(consistency_df['point_type'] == 'CompressorStation') &
                                  (consistency_df['difference'] > BALANCE_TOLERANCE)]
        for point_name in stations['point_name'].unique():
            station = stations[stations['point_name'] == point_name]
            logger.warning("Compressor station %s imbalanced on %d dates (max difference: %.6f)",
                           point_name, len(station), station['difference'].max())

    # Check capacity
    capacity_df = results['capacity']
    if not capacity_df.empty:
        over = capacity_df[capacity_df['status'] == CapacityStatus.OVER_CAPACITY.value]
        for segment_name in over['segment_name'].unique():
            segment = over[over['segment_name'] == segment_name]
            logger.warning("Segment %s over capacity on %d dates (max usage: %.2f%%)",
                           segment_name, len(segment), segment['usage_percentage'].max())
