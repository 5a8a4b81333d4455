# gasflow/__init__.py

# Import main components
from .flow_model import FlowCalculator, FlowRun, calculate_flows, calculate_daily_flows
from .store import NetworkStore
from .utils import load_config

# Import subpackages
from . import diagnostics
from . import plots

# Define version
__version__ = "0.1.0"

# Define all importable names
__all__ = [
    "calculate_flows",
    "calculate_daily_flows",
    "FlowCalculator",
    "FlowRun",
    "NetworkStore",
    "load_config"
]

# Package metadata
__author__ = "Ricardo"
__email__ = "ricardo.reyes@eawag.ch"
__description__ = "Gas pipeline network flow calculation and balancing"
