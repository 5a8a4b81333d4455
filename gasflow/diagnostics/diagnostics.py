"""
Diagnostic and checking functionality for flow calculation runs.

This module provides diagnostic capabilities that never fail a run:
- Receipt/delivery balance per run
- Point-level flow consistency (incoming vs outgoing volume)
- Capacity usage per segment flow
- Reporting of the collected history as CSV files
"""
import logging
from pathlib import Path
from typing import Dict, List

import pandas as pd

from gasflow.balance import BALANCE_TOLERANCE, balance_totals
from gasflow.capacity import CapacityEvaluation, CapacityStatus
from gasflow.data_structures import Point, Segment, SegmentFlow, to_day
from gasflow.topology import NetworkTopology

logger = logging.getLogger(__name__)

DIAGNOSTIC_TYPES = ['balance', 'consistency', 'capacity']

COLUMNS = {
    'balance': ['network_id', 'flow_date', 'total_receipt', 'total_delivery',
                'difference', 'balanced'],
    'consistency': ['network_id', 'flow_date', 'point_id', 'point_name', 'point_type',
                    'incoming', 'outgoing', 'difference'],
    'capacity': ['network_id', 'flow_date', 'segment_id', 'segment_name', 'actual_flow',
                 'capacity', 'usage_percentage', 'available_capacity', 'status']
}

def check_flow_consistency(flows: List[SegmentFlow], segments: List[Segment],
                           points: List[Point]) -> pd.DataFrame:
    """
    Compare incoming and outgoing volume at every point.

    Incoming is the sum of volume_from_prev_point over flows of segments ending
    at the point, outgoing the same sum over segments starting at it. Imbalance
    at receipt and delivery points is expected; only compressor stations are
    expected to balance.

    Returns:
        DataFrame with columns point_id, point_name, point_type, incoming,
        outgoing and difference (absolute)
    """
    segment_map = {s.id: s for s in segments}
    incoming = {p.id: 0.0 for p in points}
    outgoing = {p.id: 0.0 for p in points}

    for flow in flows:
        segment = segment_map.get(flow.segment_id)
        if segment is None:
            continue
        if segment.end_point_id in incoming:
            incoming[segment.end_point_id] += flow.volume_from_prev_point
        if segment.start_point_id in outgoing:
            outgoing[segment.start_point_id] += flow.volume_from_prev_point

    rows = []
    for point in points:
        difference = abs(incoming[point.id] - outgoing[point.id])
        logger.debug("Point %s (%s): In=%.6f, Out=%.6f, Diff=%.6f", point.name,
                     point.point_type.label, incoming[point.id], outgoing[point.id], difference)
        rows.append({
            'point_id': point.id,
            'point_name': point.name,
            'point_type': point.point_type.label,
            'incoming': incoming[point.id],
            'outgoing': outgoing[point.id],
            'difference': difference
        })

    return pd.DataFrame(rows, columns=COLUMNS['consistency'][2:])


class DiagnosticTracker:

    def __init__(self):
        """Initialize empty diagnostic history."""
        self.history = []

    def track_diagnostic_results(self, topology: NetworkTopology, volumes: Dict[int, float],
                                 flows: List[SegmentFlow], evaluations: Dict[int, CapacityEvaluation],
                                 flow_date: pd.Timestamp) -> None:
        """Store diagnostic results of one calculation run."""
        run_results = {
            'balance': self.check_balance(topology, volumes, flow_date),
            'consistency': self.check_consistency(topology, flows, flow_date),
            'capacity': self.check_capacity(topology, evaluations, flow_date)
        }
        self.history.append(run_results)

    def get_results(self) -> Dict[str, pd.DataFrame]:
        """Get complete diagnostic history by concatenating run results."""
        results = {}
        for diagnostic_type in DIAGNOSTIC_TYPES:
            frames = [run[diagnostic_type] for run in self.history if not run[diagnostic_type].empty]
            if frames:
                results[diagnostic_type] = pd.concat(frames, ignore_index=True)
            else:
                results[diagnostic_type] = pd.DataFrame(columns=COLUMNS[diagnostic_type])
        return results

    def generate_report(self, output_dir: Path) -> None:
        """
        Generate CSV reports of diagnostic results.

        Writes the full balance, consistency and capacity histories, plus
        summaries of unbalanced runs, compressor station imbalances and
        capacity status counts where there is something to report.

        Args:
            output_dir: Directory to save the reports
        """
        diagnostic_results = self.get_results()

        output_dir.mkdir(parents=True, exist_ok=True)

        for check_type, df in diagnostic_results.items():
            df.to_csv(output_dir / f'{check_type}.csv', index=False)

            if check_type == 'balance' and not df.empty:
                violations = df[~df['balanced'].astype(bool)]
                if not violations.empty:
                    violations.to_csv(output_dir / 'balance_violations.csv', index=False)

            elif check_type == 'consistency' and not df.empty:
                stations = df[(df['point_type'] == 'CompressorStation') &
                              (df['difference'] > BALANCE_TOLERANCE)]
                if not stations.empty:
                    stations.to_csv(output_dir / 'station_imbalances.csv', index=False)

            elif check_type == 'capacity' and not df.empty:
                status_summary = df.groupby(['segment_id', 'status']).size()
                status_summary.to_csv(output_dir / 'capacity_summary.csv')

    def check_balance(self, topology: NetworkTopology, volumes: Dict[int, float],
                      flow_date: pd.Timestamp) -> pd.DataFrame:
        """Receipt and delivery totals of a run."""
        total_receipt, total_delivery = balance_totals(volumes, topology.points)
        difference = abs(total_receipt - total_delivery)
        return pd.DataFrame([{
            'network_id': topology.network.id,
            'flow_date': to_day(flow_date),
            'total_receipt': total_receipt,
            'total_delivery': total_delivery,
            'difference': difference,
            'balanced': difference <= BALANCE_TOLERANCE
        }], columns=COLUMNS['balance'])

    def check_consistency(self, topology: NetworkTopology, flows: List[SegmentFlow],
                          flow_date: pd.Timestamp) -> pd.DataFrame:
        df = check_flow_consistency(flows, topology.segments, topology.points)
        df.insert(0, 'flow_date', to_day(flow_date))
        df.insert(0, 'network_id', topology.network.id)
        return df

    def check_capacity(self, topology: NetworkTopology, evaluations: Dict[int, CapacityEvaluation],
                       flow_date: pd.Timestamp) -> pd.DataFrame:
        """
        Capacity usage of every evaluated segment flow.

        Args:
            topology: Topology of the run
            evaluations: Capacity evaluation per segment id
            flow_date: Flow date of the run

        Returns:
            DataFrame with one row per segment and the status label
        """
        segments = topology.segment_map
        rows = []
        for segment_id, evaluation in evaluations.items():
            segment = segments.get(segment_id)
            rows.append({
                'network_id': topology.network.id,
                'flow_date': to_day(flow_date),
                'segment_id': segment_id,
                'segment_name': segment.name if segment is not None else '',
                'actual_flow': evaluation.actual_flow,
                'capacity': evaluation.capacity,
                'usage_percentage': evaluation.usage_percentage,
                'available_capacity': evaluation.available_capacity,
                'status': CapacityStatus(evaluation.status).value
            })
        return pd.DataFrame(rows, columns=COLUMNS['capacity'])
