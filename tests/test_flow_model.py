import threading

import pandas as pd
import pytest

from gasflow.capacity import CapacityStatus
from gasflow.diagnostics import DiagnosticTracker
from gasflow.errors import CalculationCancelled, DataAccessError, GasFlowError, NotFound
from gasflow.flow_model import FlowCalculator, calculate_daily_flows, calculate_flows, run_calculation
from gasflow.store import NetworkStore
from gasflow.utils import load_config

from conftest import FLOW_DATE, SEED_SEGMENTS, SEED_VOLUMES


def flow_values(flows):
    return {f.segment_id: (f.volume_from_prev_point, f.volume_change, f.volume_pass_thru) for f in flows}


def test_receipt_to_delivery_example(make_store):
    store = make_store(
        points=[{'id': 1, 'name': 'R', 'point_type': 'Receipt', 'network_id': 1, 'is_active': True},
                {'id': 2, 'name': 'D', 'point_type': 'Delivery', 'network_id': 1, 'is_active': True}],
        segments=[{'id': 1, 'name': 'R-D', 'network_id': 1, 'start_point_id': 1, 'end_point_id': 2,
                   'capacity': 50, 'is_active': True}],
        volumes=[{'point_id': 1, 'date': FLOW_DATE, 'volume': 100, 'volume_type': 'Receipt'},
                 {'point_id': 2, 'date': FLOW_DATE, 'volume': 100, 'volume_type': 'Delivery'}]
    )
    run = run_calculation(store, 1, FLOW_DATE, '2024-01-02')

    assert run.balanced
    assert flow_values(run.flows) == {1: (100.0, -100.0, 0.0)}
    evaluation = run.evaluations[1]
    assert evaluation.actual_flow == 0.0
    assert evaluation.status == CapacityStatus.NORMAL


def test_receipt_to_station_over_capacity_example(make_store):
    store = make_store(
        points=[{'id': 1, 'name': 'R', 'point_type': 'Receipt', 'network_id': 1, 'is_active': True},
                {'id': 2, 'name': 'CS', 'point_type': 'CompressorStation', 'network_id': 1, 'is_active': True},
                {'id': 3, 'name': 'D', 'point_type': 'Delivery', 'network_id': 1, 'is_active': True}],
        segments=[{'id': 1, 'name': 'R-CS', 'network_id': 1, 'start_point_id': 1, 'end_point_id': 2,
                   'capacity': 100, 'is_active': True},
                  {'id': 2, 'name': 'CS-D', 'network_id': 1, 'start_point_id': 2, 'end_point_id': 3,
                   'capacity': 1000, 'is_active': True}],
        volumes=[{'point_id': 1, 'date': FLOW_DATE, 'volume': 150, 'volume_type': 'Receipt'},
                 {'point_id': 3, 'date': FLOW_DATE, 'volume': 150, 'volume_type': 'Delivery'}]
    )
    run = run_calculation(store, 1, FLOW_DATE, '2024-01-02')

    assert run.balanced
    assert flow_values(run.flows)[1] == (150.0, 0.0, 150.0)
    evaluation = run.evaluations[1]
    assert evaluation.over_capacity is True
    assert evaluation.status == CapacityStatus.OVER_CAPACITY
    assert run.over_capacity == [1]
    # persisted despite the capacity breach
    assert len(store.list_flows(segment_ids=[1])) == 1


def test_seed_network(seed_store):
    count = calculate_flows(seed_store, 1, FLOW_DATE, '2024-01-02')
    assert count == 3

    flows = seed_store.list_flows()
    assert flow_values(flows) == {
        1: (800.0, 0.0, 800.0),
        2: (450.0, -450.0, 450.0),
        3: (350.0, -350.0, 350.0),
    }
    assert all(f.flow_date == pd.Timestamp(FLOW_DATE) for f in flows)


def test_seed_network_capacity(seed_store):
    run = run_calculation(seed_store, 1, FLOW_DATE, '2024-01-02')
    statuses = {sid: e.status for sid, e in run.evaluations.items()}
    assert statuses == {1: CapacityStatus.MODERATE_USAGE,
                        2: CapacityStatus.NORMAL,
                        3: CapacityStatus.NORMAL}


def test_without_distribution(seed_store):
    run = run_calculation(seed_store, 1, FLOW_DATE, '2024-01-02', distribute=False)
    assert flow_values(run.flows) == {
        1: (800.0, 0.0, 800.0),
        2: (0.0, -450.0, 0.0),
        3: (0.0, -350.0, 0.0),
    }


def test_imbalance_is_aligned(make_store, caplog):
    volumes = [dict(v) for v in SEED_VOLUMES]
    volumes[2]['volume'] = 300
    store = make_store(volumes=volumes)

    run = run_calculation(store, 1, FLOW_DATE, '2024-01-02')

    assert not run.balanced
    assert (run.total_receipt, run.total_delivery) == (800.0, 750.0)
    assert "Volume imbalance detected" in caplog.text
    values = flow_values(run.flows)
    assert values[2][1] == pytest.approx(-480.0)
    assert values[3][1] == pytest.approx(-320.0)
    assert values[2][2] + values[3][2] == pytest.approx(800.0)


def test_imbalance_without_alignment(make_store):
    volumes = [dict(v) for v in SEED_VOLUMES]
    volumes[2]['volume'] = 300
    run = run_calculation(make_store(volumes=volumes), 1, FLOW_DATE, '2024-01-02', align=False)
    assert flow_values(run.flows)[3][1] == -300.0


def test_recalculation_updates_canonical_records(seed_store, data_dir):
    first = run_calculation(seed_store, 1, FLOW_DATE, '2024-01-02')
    ids = {f.segment_id: f.id for f in first.flows}

    volumes = [dict(v) for v in SEED_VOLUMES]
    volumes[0]['volume'] = 900
    volumes[1]['volume'] = 550
    pd.DataFrame(volumes).to_csv(data_dir / 'volumes.csv', index=False)
    seed_store.clear_cache()

    second = run_calculation(seed_store, 1, FLOW_DATE, '2024-01-02')

    flows = seed_store.list_flows()
    assert len(flows) == 3
    assert {f.segment_id: f.id for f in flows} == ids
    assert all(f.modified_date is not None for f in second.flows)
    assert flow_values(flows)[1] == (900.0, 0.0, 900.0)


def test_unknown_network_writes_nothing(seed_store, data_dir):
    with pytest.raises(NotFound):
        calculate_flows(seed_store, 99, FLOW_DATE, '2024-01-02')
    with pytest.raises(NotFound):
        calculate_flows(seed_store, 2, FLOW_DATE, '2024-01-02')
    assert not (data_dir / 'flows.csv').exists()


def test_invalid_capacity_unit_writes_nothing(make_store, data_dir):
    segments = SEED_SEGMENTS[:2] + [dict(SEED_SEGMENTS[2], capacity_unit='mmcf')]
    store = make_store(segments=segments)
    with pytest.raises(DataAccessError) as exc_info:
        run_calculation(store, 1, FLOW_DATE, '2024-01-02')
    assert isinstance(exc_info.value, GasFlowError)
    assert not (data_dir / 'flows.csv').exists()


def test_network_id_as_text(seed_store):
    assert calculate_flows(seed_store, '1', FLOW_DATE, '2024-01-02') == 3
    run = run_calculation(seed_store, '1', FLOW_DATE, '2024-01-02')
    assert run.network_id == 1


def test_cancelled_run_writes_nothing(seed_store, data_dir):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(CalculationCancelled):
        run_calculation(seed_store, 1, FLOW_DATE, '2024-01-02', cancel_event=cancel)
    assert seed_store.list_flows() == []
    assert not (data_dir / 'flows.csv').exists()


def test_parallel_run(seed_store):
    run = run_calculation(seed_store, 1, FLOW_DATE, '2024-01-02', n_jobs=2)
    assert flow_values(run.flows)[2] == (450.0, -450.0, 450.0)


def test_multi_day_range_is_one_record(make_store):
    volumes = SEED_VOLUMES + [dict(v, date='2024-01-02') for v in SEED_VOLUMES]
    store = make_store(volumes=volumes)
    run = run_calculation(store, 1, FLOW_DATE, '2024-01-03')
    assert run.flow_date == pd.Timestamp(FLOW_DATE)
    assert flow_values(run.flows)[1] == (1600.0, 0.0, 1600.0)
    assert len(store.list_flows()) == 3


def test_daily_runs(make_store):
    volumes = SEED_VOLUMES + [dict(v, date='2024-01-02') for v in SEED_VOLUMES]
    store = make_store(volumes=volumes)

    runs = calculate_daily_flows(store, 1, FLOW_DATE, '2024-01-03', progress=False)

    assert [r.flow_date for r in runs] == [pd.Timestamp('2024-01-01'), pd.Timestamp('2024-01-02')]
    flows = store.list_flows()
    assert len(flows) == 6
    assert all(f.volume_pass_thru == 800.0 for f in flows if f.segment_id == 1)


def test_tracker_records_run(seed_store):
    tracker = DiagnosticTracker()
    run_calculation(seed_store, 1, FLOW_DATE, '2024-01-02', tracker=tracker)
    results = tracker.get_results()
    assert results['balance']['balanced'].tolist() == [True]
    assert len(results['consistency']) == 4
    assert len(results['capacity']) == 3


def test_calculator_from_config(config_dir):
    calculator = FlowCalculator.from_config(load_config(config_dir))
    assert calculator.align and calculator.distribute
    assert calculator.n_jobs == 1
    run = calculator.calculate(1, FLOW_DATE, '2024-01-02')
    assert run.segments_updated == 3


def test_calculator_env_overrides(config_dir):
    calculator = FlowCalculator.from_config(load_config(config_dir, 'raw'), n_jobs=2)
    assert not calculator.align
    assert not calculator.distribute
    assert calculator.n_jobs == 2
    assert calculator.volume_unit.value == 'MMCF'

    runs = calculator.calculate_daily(1, FLOW_DATE, '2024-01-02', progress=False)
    values = flow_values(runs[0].flows)
    assert values[2] == (0.0, -450.0, 0.0)
    # 1000 MCF of capacity is 1 MMCF, readings are taken as MMCF
    assert runs[0].evaluations[1].capacity == pytest.approx(1.0)
    assert runs[0].evaluations[1].status == CapacityStatus.OVER_CAPACITY


def test_store_shared_between_runs(data_dir, make_store):
    make_store()
    first, second = NetworkStore(data_dir), NetworkStore(data_dir)
    calculate_flows(first, 1, FLOW_DATE, '2024-01-02')
    assert len(second.list_flows()) == 3
