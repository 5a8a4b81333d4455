from pathlib import Path

import numpy as np
import pandas as pd

import matplotlib.pyplot as plt
import matplotlib.dates as mdates
import seaborn as sns

from gasflow.capacity import HIGH_USAGE_PERCENT, MODERATE_USAGE_PERCENT

COLOR_PALETTE = [
    "#4e79a7", "#f28e2b", "#e15759",
    "#9c755f", "#59a14f", "#edc948",
    "#b07aa1", "#ff9da7", "#76b7b2",
    "#bab0ac"
]

FIG_WIDTH_CM = 18
FIG_HEIGHT_CM = 12

def _set_theme() -> None:
    custom_params = {"axes.spines.top": False, "axes.spines.right": False}
    sns.set_theme(context='notebook', style='ticks', palette='colorblind',
                  font='serif', font_scale=0.8, rc=custom_params)
    sns.set_palette(COLOR_PALETTE)

def _usage_color(usage: float) -> str:
    if usage > 100:
        return 'C2'
    if usage > HIGH_USAGE_PERCENT:
        return 'C1'
    if usage > MODERATE_USAGE_PERCENT:
        return 'C5'
    return 'C0'

def plot_capacity_usage(flows: pd.DataFrame, output_dir: Path) -> Path:
    """
    Plot peak capacity usage per segment with the usage thresholds.

    Args:
        flows (pd.DataFrame): Flow table from flows_to_dataframe
        output_dir (Path): Directory to save the figure

    Returns:
        Path: The saved PDF file
    """
    _set_theme()
    output_dir.mkdir(parents=True, exist_ok=True)

    usage = flows.groupby('segment_name', sort=False)['usage_percentage'].max()

    fig, ax = plt.subplots(figsize=(FIG_WIDTH_CM / 2.54, FIG_HEIGHT_CM / 2.54))
    colors = [_usage_color(u) for u in usage.values]
    x = np.arange(len(usage))
    ax.bar(x, usage.values, color=colors)
    ax.set_xticks(x, usage.index.astype(str), rotation=30, ha='right')

    ax.axhline(MODERATE_USAGE_PERCENT, linestyle=':', linewidth=0.7, color='C5', label='Moderate usage')
    ax.axhline(HIGH_USAGE_PERCENT, linestyle='--', linewidth=0.7, color='C1', label='High usage')
    ax.axhline(100, linestyle='-', linewidth=0.7, color='C2', label='Capacity')

    ax.set_xlabel("Segment")
    ax.set_ylabel("Peak capacity usage [%]")
    ax.legend(loc='upper center', bbox_to_anchor=(0.5, 1.12), ncol=3, frameon=False)
    plt.tight_layout()

    output_file = output_dir / 'capacity_usage.pdf'
    fig.savefig(output_file, bbox_inches='tight')
    plt.close(fig)
    return output_file

def plot_daily_flows(flows: pd.DataFrame, output_dir: Path, unit: str = 'MCF') -> Path:
    """Plot pass through volume of every segment over the flow dates."""
    _set_theme()
    output_dir.mkdir(parents=True, exist_ok=True)

    series = flows.pivot_table(index='flow_date', columns='segment_name',
                               values='volume_pass_thru', aggfunc='sum')

    fig, ax = plt.subplots(figsize=(FIG_WIDTH_CM / 2.54, FIG_HEIGHT_CM / 2.54))
    for name in series.columns:
        ax.plot(pd.to_datetime(series.index), series[name], linewidth=0.7, marker='.', label=name)

    ax.xaxis.set_major_formatter(mdates.DateFormatter('%d %b\n%Y'))
    ax.set_xlabel("Flow date")
    ax.set_ylabel(f"Pass through volume [{unit}]")
    ax.legend(loc='upper center', bbox_to_anchor=(0.5, 1.12), ncol=3, frameon=False)
    plt.tight_layout()

    output_file = output_dir / 'daily_flows.pdf'
    fig.savefig(output_file, bbox_inches='tight')
    plt.close(fig)
    return output_file
