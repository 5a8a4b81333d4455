from pathlib import Path
from typing import List

from gasflow.capacity import CapacityStatus
from gasflow.data_structures import Segment
from gasflow.flow_model import FlowRun
from gasflow.postprocess import flows_to_dataframe
from gasflow.units import VolumeUnit

def write_summary(runs: List[FlowRun], segments: List[Segment], output_file: Path,
                  volume_unit: VolumeUnit | str = VolumeUnit.MCF) -> None:
    """
    Generate a summary of receipts, deliveries and segment flows of calculation runs.

    Args:
        runs (List[FlowRun]): Calculation runs to summarize
        segments (List[Segment]): Segments of the network
        output_file (Path): Path to save the summary file
        volume_unit: Unit of the volumes

    Returns:
        None
    """
    unit = VolumeUnit(volume_unit).value
    flows = [flow for run in runs for flow in run.flows]
    df = flows_to_dataframe(flows, segments, volume_unit)

    # Write summary to file
    with open(output_file, 'w', encoding="utf8") as f:
        f.write("=" * 50 + "\n\n")
        f.write("Gas Flow Summary\n")
        f.write("=" * 50 + "\n\n")

        if runs:
            f.write(f"{'Network':22s}: {runs[0].network_id}\n")
            f.write(f"{'Flow dates':22s}: {runs[0].flow_date.date()} to {runs[-1].flow_date.date()}\n")
        f.write(f"{'Calculation runs':22s}: {len(runs)}\n")
        f.write(f"{'Segments updated':22s}: {sum(r.segments_updated for r in runs)}\n")

        f.write("\nVolume Balance Check\n")
        f.write("-" * 25 + "\n")
        total_receipt = sum(r.total_receipt for r in runs)
        total_delivery = sum(r.total_delivery for r in runs)
        f.write(f"{'Total Receipt':22s}: {total_receipt:,.2f} {unit}\n")
        f.write(f"{'Total Delivery':22s}: {total_delivery:,.2f} {unit}\n")
        f.write(f"{'Difference':22s}: {total_receipt - total_delivery:,.2f} {unit}\n")
        f.write(f"{'Unbalanced runs':22s}: {sum(1 for r in runs if not r.balanced)}\n")

        f.write("\n\n\n")
        f.write("=" * 50 + "\n\n")
        f.write("Segment Flow Details\n")
        f.write("=" * 50 + "\n\n")

        if df.empty:
            f.write("No segment flows\n")
            return

        # Write pass through totals per segment
        f.write("\nPass Through Volume\n")
        f.write("-" * 25 + "\n")
        for name, total in df.groupby('segment_name', sort=False)['volume_pass_thru'].sum().items():
            f.write(f"{name:22s}: {total:,.2f} {unit}\n")

        # Write peak usage per segment
        f.write("\nPeak Capacity Usage\n")
        f.write("-" * 25 + "\n")
        for name, usage in df.groupby('segment_name', sort=False)['usage_percentage'].max().items():
            f.write(f"{name:22s}: {usage:,.2f} %\n")

        # Write status counts
        f.write("\nCapacity Status\n")
        f.write("-" * 25 + "\n")
        counts = df['status'].value_counts()
        for status in CapacityStatus:
            f.write(f"{status.value:22s}: {int(counts.get(status.value, 0))}\n")

        over = df[df['status'] == CapacityStatus.OVER_CAPACITY.value]
        if not over.empty:
            f.write("\nOver Capacity\n")
            f.write("-" * 25 + "\n")
            for _, row in over.iterrows():
                f.write(f"{row['segment_name']:22s}: {row['flow_date'].date()} "
                        f"{row['actual_flow']:,.2f} of {row['capacity']:,.2f} {unit}\n")
