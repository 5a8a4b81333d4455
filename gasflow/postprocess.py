import argparse
from pathlib import Path
from typing import List, Optional

import pandas as pd
import pint_pandas

from gasflow.capacity import evaluate_segment
from gasflow.data_structures import Segment, SegmentFlow
from gasflow.store import NetworkStore
from gasflow.units import VolumeUnit
from gasflow.utils import load_config

VOLUME_COLUMNS = ['volume_from_prev_point', 'volume_change', 'volume_pass_thru',
                  'actual_flow', 'capacity', 'available_capacity']

def flows_to_dataframe(flows: List[SegmentFlow], segments: List[Segment],
                       volume_unit: VolumeUnit | str = VolumeUnit.MCF,
                       with_units: bool = False) -> pd.DataFrame:
    """
    Tabulate flows with their capacity evaluation.

    Args:
        flows: Segment flows to report
        segments: Segments the flows belong to; flows of unknown segments are skipped
        volume_unit: Unit of the flow volumes
        with_units: Return volume columns as pint arrays in volume_unit

    Returns:
        pd.DataFrame: One row per flow, ordered by date and segment
    """
    volume_unit = VolumeUnit(volume_unit)
    segment_map = {s.id: s for s in segments}

    rows = []
    for flow in flows:
        segment = segment_map.get(flow.segment_id)
        if segment is None:
            continue
        evaluation = evaluate_segment(flow, segment, volume_unit)
        rows.append({
            'flow_date': flow.flow_date,
            'segment_id': flow.segment_id,
            'segment_name': segment.name,
            'start_point_id': flow.start_point_id,
            'end_point_id': flow.end_point_id,
            'volume_from_prev_point': flow.volume_from_prev_point,
            'volume_change': flow.volume_change,
            'volume_pass_thru': flow.volume_pass_thru,
            'actual_flow': evaluation.actual_flow,
            'capacity': evaluation.capacity,
            'usage_percentage': evaluation.usage_percentage,
            'available_capacity': evaluation.available_capacity,
            'status': evaluation.status.value,
            'notes': flow.notes
        })

    df = pd.DataFrame(rows, columns=['flow_date', 'segment_id', 'segment_name', 'start_point_id',
                                     'end_point_id', *VOLUME_COLUMNS[:3], 'actual_flow', 'capacity',
                                     'usage_percentage', 'available_capacity', 'status', 'notes'])
    df = df.sort_values(['flow_date', 'segment_id']).reset_index(drop=True)

    if with_units:
        for col in VOLUME_COLUMNS:
            df[col] = pint_pandas.PintArray(df[col].astype(float).values,
                                            dtype=f"pint[{volume_unit.pint_name}]")
    return df

def strip_units(df: pd.DataFrame) -> pd.DataFrame:
    """Replace pint columns by their magnitudes, keeping the units in df.attrs."""
    units_dict = {col: str(df[col].pint.units) for col in df.columns
                  if isinstance(df[col].dtype, pint_pandas.PintType)}
    df_regular = df.copy()
    for col in units_dict:
        df_regular[col] = df[col].pint.magnitude
    df_regular.attrs['units'] = units_dict
    return df_regular

def show_flows():
    parser = argparse.ArgumentParser(description="Show stored segment flows with capacity status")
    parser.add_argument("--config", required=True, help="Path to the configuration files")
    parser.add_argument("--env", default="default", help="Environment to use within the config file")
    parser.add_argument("--network", type=int, help="Only show segments of this network")
    parser.add_argument("--segment", type=int, action="append", help="Segment id (repeatable)")
    parser.add_argument("--start", help="First flow date (YYYY-MM-DD)")
    parser.add_argument("--end", help="Day after the last flow date (YYYY-MM-DD)")
    parser.add_argument("--output", help="Save the table to this CSV file")
    args = parser.parse_args()

    config = load_config(args.config, args.env)
    store = NetworkStore.from_config(config)

    if args.network is not None:
        segments = store.get_active_segments_by_network(args.network)
    else:
        segments = [s for n in store.get_active_networks()
                    for s in store.get_active_segments_by_network(n.id)]

    segment_ids: Optional[List[int]] = args.segment
    if segment_ids is None:
        segment_ids = [s.id for s in segments]

    flows = store.list_flows(segment_ids, args.start, args.end)
    df = flows_to_dataframe(flows, segments, config.units.volume)

    if df.empty:
        print("No flows found")
        return

    if args.output:
        output_file = Path(args.output)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(output_file, index=False)
        print(f"{len(df)} flows saved in {output_file}")
    else:
        with pd.option_context('display.max_rows', None, 'display.width', 200):
            print(df.drop(columns=['notes']).to_string(index=False))
