"""
Flow Calculation Module

This module runs flow calculations for one network over a date range.

A calculation run consists of:
1. Resolving the active topology of the network
2. Classifying the signed net volume of every point
3. Validating the receipt/delivery balance and aligning delivery volumes
4. Computing single-hop flows for every segment
5. Distributing compressor station volume across outgoing segments
6. Totalizing raw records and upserting them as canonical flows
7. Evaluating every flow against its segment capacity

Runs are cancellable between stages until the write phase starts; the write
phase always completes or rolls back as a whole.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd
from dynaconf import Dynaconf
from tqdm.auto import tqdm

from gasflow.balance import align_volumes, balance_totals, validate_balance
from gasflow.capacity import CapacityEvaluation, CapacityStatus, evaluate_segment
from gasflow.data_structures import DateLike, SegmentFlow, day_range, to_day
from gasflow.diagnostics import DiagnosticTracker
from gasflow.errors import CalculationCancelled
from gasflow.flow_manager import compute_segment_flows, distribution_flows
from gasflow.store import NetworkStore
from gasflow.topology import resolve_topology
from gasflow.totalizer import persist_flows, totalize_flows
from gasflow.units import VolumeUnit
from gasflow.volumes import classify_volumes

logger = logging.getLogger(__name__)


@dataclass
class FlowRun:
    """Outcome of one calculation run"""
    network_id: int
    flow_date: pd.Timestamp
    flows: List[SegmentFlow] = field(default_factory=list)
    evaluations: Dict[int, CapacityEvaluation] = field(default_factory=dict)
    total_receipt: float = 0.0
    total_delivery: float = 0.0
    balanced: bool = True

    @property
    def segments_updated(self) -> int:
        return len(self.flows)

    @property
    def over_capacity(self) -> List[int]:
        """Segment ids whose flow exceeds capacity"""
        return [sid for sid, e in self.evaluations.items() if e.status == CapacityStatus.OVER_CAPACITY]


def run_calculation(store, network_id: int, start: DateLike, end: DateLike,
                    align: bool = True, distribute: bool = True, n_jobs: int = 1,
                    volume_unit: VolumeUnit | str = VolumeUnit.MCF,
                    cancel_event: Optional[threading.Event] = None,
                    tracker: Optional[DiagnosticTracker] = None) -> FlowRun:
    """
    Run the full flow calculation for a network over [start, end).

    Args:
        store: Data store (see NetworkStore)
        network_id: Network to calculate
        start: First day of the range; also the flow date of the records
        end: Day after the last day of the range
        align: Rescale delivery volumes when receipts and deliveries do not balance
        distribute: Distribute compressor station volume over outgoing segments
        n_jobs: Parallel jobs for the per-segment computation
        volume_unit: Unit of the volume readings, used for capacity conversion
        cancel_event: Event that cancels the run between stages when set
        tracker: Diagnostic tracker collecting balance, consistency and capacity checks

    Returns:
        FlowRun: Stored flows and their capacity evaluations

    Raises:
        NotFound: If the network does not exist or is inactive
        DataAccessError: If the store cannot be read or written
        ConflictError: If the flows were modified by another writer
        CalculationCancelled: If the run was cancelled before the write phase
    """
    flow_date = to_day(start)

    topology = resolve_topology(store, network_id, flow_date)
    network_id = topology.network.id
    logger.debug("Found %d segments and %d points for network %d",
                 len(topology.segments), len(topology.points), network_id)
    _check_cancelled(cancel_event, 'topology')

    volumes = classify_volumes(topology.points, start, end, store)
    _check_cancelled(cancel_event, 'classification')

    total_receipt, total_delivery = balance_totals(volumes, topology.points)
    balanced = validate_balance(volumes, topology.points)
    if not balanced:
        logger.warning("Volume imbalance detected for network %d on %s (receipt %.3f, delivery %.3f)",
                       network_id, flow_date.date(), total_receipt, total_delivery)
        if align:
            volumes = align_volumes(volumes, topology.points)
    _check_cancelled(cancel_event, 'balance')

    raw_flows = compute_segment_flows(topology.segments, volumes, flow_date, n_jobs=n_jobs)
    if distribute:
        raw_flows += distribution_flows(topology, volumes, raw_flows, flow_date)
    _check_cancelled(cancel_event, 'segment flows')

    totals = totalize_flows(topology.segments, raw_flows)
    _check_cancelled(cancel_event, 'totalization')

    stored = persist_flows(store, totals)

    segments = topology.segment_map
    evaluations = {}
    for flow in stored:
        evaluation = evaluate_segment(flow, segments[flow.segment_id], volume_unit)
        evaluations[flow.segment_id] = evaluation
        if evaluation.over_capacity:
            logger.warning("Segment %s over capacity on %s: %.3f of %.3f (%.1f%%)",
                           segments[flow.segment_id].name, flow_date.date(), evaluation.actual_flow,
                           evaluation.capacity, evaluation.usage_percentage)

    if tracker is not None:
        tracker.track_diagnostic_results(topology, volumes, stored, evaluations, flow_date)

    logger.info("Calculated flows for %d segments of network %d on %s",
                len(stored), network_id, flow_date.date())

    return FlowRun(
        network_id=network_id,
        flow_date=flow_date,
        flows=stored,
        evaluations=evaluations,
        total_receipt=total_receipt,
        total_delivery=total_delivery,
        balanced=balanced
    )

def calculate_flows(store, network_id: int, start: DateLike, end: DateLike, **kwargs) -> int:
    """Calculate and store flows for a network over [start, end); returns the number of segments updated."""
    return run_calculation(store, network_id, start, end, **kwargs).segments_updated

def calculate_daily_flows(store, network_id: int, start: DateLike, end: DateLike,
                          progress: bool = True, **kwargs) -> List[FlowRun]:
    """
    Run one calculation per day of [start, end).

    Each day is its own run with its own flow date; keyword arguments are passed
    to run_calculation.
    """
    runs = []
    days = day_range(start, end)
    for day in tqdm(days, desc="Flow calculation", disable=not progress):
        runs.append(run_calculation(store, network_id, day, day + pd.Timedelta(days=1), **kwargs))
    return runs

def _check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("Flow calculation cancelled after %s", stage)
        raise CalculationCancelled(f"Flow calculation cancelled after {stage}")


class FlowCalculator:
    """
    Flow calculation bound to a data store and calculation settings.

    Settings usually come from a configuration file (see from_config).
    """

    def __init__(self, store: NetworkStore, align: bool = True, distribute: bool = True,
                 n_jobs: int = 1, volume_unit: VolumeUnit | str = VolumeUnit.MCF):
        self.store = store
        self.align = align
        self.distribute = distribute
        self.n_jobs = n_jobs
        self.volume_unit = VolumeUnit(volume_unit)

    @classmethod
    def from_config(cls, config: Dynaconf, n_jobs: Optional[int] = None) -> 'FlowCalculator':
        """Create a calculator from a configuration; n_jobs overrides the configured value."""
        return cls(
            store=NetworkStore.from_config(config),
            align=bool(config.balance.align),
            distribute=bool(config.distribution.enabled),
            n_jobs=n_jobs if n_jobs is not None else int(config.calculation.n_jobs),
            volume_unit=config.units.volume
        )

    def _options(self) -> Dict:
        return {
            'align': self.align,
            'distribute': self.distribute,
            'n_jobs': self.n_jobs,
            'volume_unit': self.volume_unit
        }

    def calculate(self, network_id: int, start: DateLike, end: DateLike,
                  cancel_event: Optional[threading.Event] = None,
                  tracker: Optional[DiagnosticTracker] = None) -> FlowRun:
        return run_calculation(self.store, network_id, start, end, cancel_event=cancel_event,
                               tracker=tracker, **self._options())

    def calculate_daily(self, network_id: int, start: DateLike, end: DateLike,
                        cancel_event: Optional[threading.Event] = None,
                        tracker: Optional[DiagnosticTracker] = None,
                        progress: bool = True) -> List[FlowRun]:
        return calculate_daily_flows(self.store, network_id, start, end, progress=progress,
                                     cancel_event=cancel_event, tracker=tracker, **self._options())
