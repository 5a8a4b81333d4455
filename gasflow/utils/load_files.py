from pathlib import Path
from dynaconf import Dynaconf
import yaml

DEFAULT_SETTINGS = {
    'data_directory': 'data',
    'files': {
        'networks': 'networks.csv',
        'points': 'points.csv',
        'segments': 'segments.csv',
        'volumes': 'volumes.csv',
        'flows': 'flows.csv'
    },
    'units': {'volume': 'MCF'},
    'balance': {'align': True},
    'distribution': {'enabled': True},
    'calculation': {'n_jobs': 1},
    'output': {'directory': 'output'}
}

def load_config(config_path: str | Path, env: str = "default", base_config: str = "config.yaml") -> Dynaconf:
    """
    Load configuration from YAML file with optional environment selection.

    Relative data and output directories are resolved against the configuration
    directory.

    Args:
        config_path: Path to configuration directory
        env: Environment name in the YAML file
        base_config: Name of base config file

    Returns:
        Dynaconf: Configuration object with loaded settings
    """
    base_dir = Path(config_path)

    with open(base_dir / base_config, 'r', encoding='utf-8') as f:
        yaml_config = yaml.safe_load(f) or {}

    # Environment sections are merged over the "default" section
    if env in yaml_config or "default" in yaml_config:
        base_settings = yaml_config.get("default", {})
        env_settings = yaml_config.get(env, {}) if env != "default" else {}
        _deep_merge(base_settings, env_settings)
        yaml_config = base_settings

    settings = _deep_copy(DEFAULT_SETTINGS)
    _deep_merge(settings, yaml_config)

    settings['data_directory'] = str(_resolve(base_dir, settings['data_directory']))
    settings['output']['directory'] = str(_resolve(base_dir, settings['output']['directory']))

    return Dynaconf(settings_files=False, env=env, **settings)

def _resolve(base_dir: Path, directory: str) -> Path:
    path = Path(directory)
    return path if path.is_absolute() else base_dir / path

def _deep_copy(settings: dict) -> dict:
    return {key: _deep_copy(value) if isinstance(value, dict) else value
            for key, value in settings.items()}

def _deep_merge(base: dict, update: dict) -> None:
    """
    Recursively merge two dictionaries, modifying the base dictionary.

    Args:
        base: Base dictionary to update
        update: Dictionary with values to merge
    """
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
