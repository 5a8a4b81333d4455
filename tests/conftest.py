from pathlib import Path

import matplotlib
matplotlib.use('Agg')

import pandas as pd
import pytest

from gasflow.store import TABLE_COLUMNS, NetworkStore

FLOW_DATE = '2024-01-01'

SEED_NETWORKS = [
    {'id': 1, 'name': 'Main Pipeline Network', 'is_active': True},
    {'id': 2, 'name': 'Distribution Network', 'is_active': False},
]

SEED_POINTS = [
    {'id': 1, 'name': 'Receipt Point A', 'point_type': 'Receipt', 'network_id': 1, 'is_active': True},
    {'id': 2, 'name': 'Compressor Station 1', 'point_type': 'CompressorStation', 'network_id': 1, 'is_active': True},
    {'id': 3, 'name': 'Delivery Point B', 'point_type': 'Delivery', 'network_id': 1, 'is_active': True},
    {'id': 4, 'name': 'Delivery Point C', 'point_type': 'Delivery', 'network_id': 1, 'is_active': True},
]

SEED_SEGMENTS = [
    {'id': 1, 'name': 'Segment A-CS1', 'network_id': 1, 'start_point_id': 1, 'end_point_id': 2,
     'capacity': 1000, 'capacity_unit': 'MCF', 'is_active': True},
    {'id': 2, 'name': 'Segment CS1-B', 'network_id': 1, 'start_point_id': 2, 'end_point_id': 3,
     'capacity': 600, 'capacity_unit': 'MCF', 'is_active': True},
    {'id': 3, 'name': 'Segment CS1-C', 'network_id': 1, 'start_point_id': 2, 'end_point_id': 4,
     'capacity': 500, 'capacity_unit': 'MCF', 'is_active': True},
]

SEED_VOLUMES = [
    {'point_id': 1, 'date': FLOW_DATE, 'volume': 800, 'volume_type': 'Receipt'},
    {'point_id': 3, 'date': FLOW_DATE, 'volume': 450, 'volume_type': 'Delivery'},
    {'point_id': 4, 'date': FLOW_DATE, 'volume': 350, 'volume_type': 'Delivery'},
]


def write_tables(data_dir: Path, **tables) -> Path:
    """Write CSV tables (networks, points, segments, volumes, flows) to data_dir."""
    data_dir.mkdir(parents=True, exist_ok=True)
    for table, rows in tables.items():
        pd.DataFrame(rows, columns=TABLE_COLUMNS[table]).to_csv(data_dir / f'{table}.csv', index=False)
    return data_dir


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / 'data'


@pytest.fixture
def make_store(data_dir):
    """Factory writing the given tables (seed network by default) and returning a store."""
    def _make(networks=None, points=None, segments=None, volumes=None, flows=None):
        tables = {
            'networks': SEED_NETWORKS if networks is None else networks,
            'points': SEED_POINTS if points is None else points,
            'segments': SEED_SEGMENTS if segments is None else segments,
            'volumes': SEED_VOLUMES if volumes is None else volumes,
        }
        if flows is not None:
            tables['flows'] = flows
        write_tables(data_dir, **tables)
        return NetworkStore(data_dir)
    return _make


@pytest.fixture
def seed_store(make_store):
    return make_store()


@pytest.fixture
def config_dir(tmp_path, data_dir):
    """Configuration directory pointing at the seed data."""
    write_tables(data_dir, networks=SEED_NETWORKS, points=SEED_POINTS,
                 segments=SEED_SEGMENTS, volumes=SEED_VOLUMES)
    directory = tmp_path / 'config'
    directory.mkdir()
    (directory / 'config.yaml').write_text(
        "default:\n"
        "  data_directory: ../data\n"
        "  output:\n"
        "    directory: ../output\n"
        "raw:\n"
        "  balance:\n"
        "    align: false\n"
        "  distribution:\n"
        "    enabled: false\n"
        "  units:\n"
        "    volume: MMCF\n",
        encoding='utf-8'
    )
    return directory
