# gasflow/plots/__init__.py

from .generate_plots import plot_capacity_usage, plot_daily_flows

__all__ = [
    "plot_capacity_usage",
    "plot_daily_flows"
]
