# gasflow/utils/__init__.py

from .load_files import load_config

__all__ = [
    "load_config"
]
