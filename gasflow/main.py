from typing import List, Tuple
from pathlib import Path
import argparse
import logging
import pandas as pd
import yaml

from gasflow.data_structures import Period, to_day
from gasflow.diagnostics import DiagnosticTracker, alert
from gasflow.errors import GasFlowError
from gasflow.flow_model import FlowCalculator, FlowRun
from gasflow.postprocess import flows_to_dataframe
from gasflow.summary import write_summary
from gasflow.utils import load_config
from gasflow.plots import plot_capacity_usage, plot_daily_flows

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s',
                    datefmt='%H:%M:%S')
logger = logging.getLogger(__name__)

def main(argv: List[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Calculate gas pipeline network flows")
    parser.add_argument("--config", required=True, help="Path to the configuration files")
    parser.add_argument("--env", default="default", help="Environment to use within the config file")
    parser.add_argument("--network", type=int, action="append",
                        help="Network id (repeatable, default: all active networks)")
    parser.add_argument("--start", help="First day of the range (YYYY-MM-DD)")
    parser.add_argument("--end", help="Day after the last day of the range (YYYY-MM-DD)")
    parser.add_argument("--period", help="Named period instead of --start/--end (e.g. 'Last 7 Days')")
    parser.add_argument("--daily", action="store_true", help="Calculate each day of the range separately")
    parser.add_argument("--check", action="store_true", help="Check balance, consistency and capacity")
    parser.add_argument("--plot", action="store_true", help="Generate capacity and flow plots")
    parser.add_argument("--n-jobs", type=int, default=None, help="Number of parallel jobs")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info("Gas Pipeline Flow Calculation")

    try:
        start, end = resolve_dates(args)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        config = load_config(args.config, args.env, "config.yaml")
    except (OSError, yaml.YAMLError) as exc:
        parser.error(f"Cannot load configuration: {exc}")

    if args.check:
        logger.info("Diagnostic checks enabled")

    try:
        calculator = FlowCalculator.from_config(config, n_jobs=args.n_jobs)
        network_ids = args.network or [n.id for n in calculator.store.get_active_networks()]
        logger.info("Number of networks: %d", len(network_ids))
        logger.info("Calculation period: %s to %s", start.strftime('%Y-%m-%d'), end.strftime('%Y-%m-%d'))

        out_base = Path(config.output.directory) / args.env
        for network_id in network_ids:
            tracker = DiagnosticTracker() if args.check else None
            if args.daily:
                runs = calculator.calculate_daily(network_id, start, end, tracker=tracker)
            else:
                runs = [calculator.calculate(network_id, start, end, tracker=tracker)]

            process_outputs(runs, tracker, calculator, out_base / f"network_{network_id}", args)
    except GasFlowError as exc:
        logger.error("Flow calculation failed: %s", exc)
        raise SystemExit(1) from exc

    logger.info("Calculation completed")

def resolve_dates(args) -> Tuple[pd.Timestamp, pd.Timestamp]:
    """Calculation range from --period or --start/--end; defaults to today."""
    if args.period:
        period = Period.by_name(args.period)
        return period.start_time, period.end_time

    start = to_day(args.start) if args.start else to_day(pd.Timestamp.today())
    end = to_day(args.end) if args.end else start + pd.Timedelta(days=1)
    return start, end

def process_outputs(runs: List[FlowRun], tracker, calculator: FlowCalculator, output_dir: Path, args):
    """Process and save outputs based on arguments"""

    output_dir.mkdir(parents=True, exist_ok=True)
    network_id = runs[0].network_id
    segments = calculator.store.get_active_segments_by_network(network_id)

    # Generate plots
    if args.plot:
        plot_dir = output_dir / 'figures'
        flows = flows_to_dataframe([f for run in runs for f in run.flows], segments, calculator.volume_unit)
        if flows.empty:
            logger.warning("No flows to plot for network %d", network_id)
        else:
            plot_capacity_usage(flows, plot_dir)
            plot_daily_flows(flows, plot_dir, calculator.volume_unit.value)
            logger.info("Plots saved to %s", plot_dir)

    # Check results
    if args.check:
        check_dir = output_dir / 'diagnostic'
        check_dir.mkdir(parents=True, exist_ok=True)
        tracker.generate_report(check_dir)
        alert(tracker)
        logger.info("Diagnostic reports saved to %s", check_dir)

    summary_file = output_dir / 'summary.txt'
    write_summary(runs, segments, summary_file, calculator.volume_unit)
    logger.info("Summary saved to %s", summary_file)

if __name__ == "__main__":
    main()
