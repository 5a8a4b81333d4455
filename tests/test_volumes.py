import pandas as pd

from gasflow.data_structures import Point, PointType, VolumeType
from gasflow.volumes import classify_volume, classify_volumes


class FakeProvider:
    """Volume readings keyed by (point_id, day, volume_type)"""

    def __init__(self, readings):
        self.readings = {(pid, pd.Timestamp(day), vtype): volume
                         for (pid, day, vtype), volume in readings.items()}
        self.calls = []

    def get_point_volume(self, point_id, date, volume_type):
        self.calls.append((point_id, pd.Timestamp(date), volume_type))
        return self.readings.get((point_id, pd.Timestamp(date), volume_type), 0.0)


RECEIPT = Point(id=1, name='R', point_type=PointType.RECEIPT)
STATION = Point(id=2, name='CS', point_type=PointType.COMPRESSOR_STATION)
DELIVERY = Point(id=3, name='D', point_type=PointType.DELIVERY)

PROVIDER_READINGS = {
    (1, '2024-01-01', VolumeType.RECEIPT): 100.0,
    (1, '2024-01-02', VolumeType.RECEIPT): 50.0,
    (1, '2024-01-01', VolumeType.DELIVERY): 999.0,
    (3, '2024-01-01', VolumeType.DELIVERY): 80.0,
    (3, '2024-01-02', VolumeType.DELIVERY): 20.0,
    (2, '2024-01-01', VolumeType.RECEIPT): 500.0,
}


def test_receipt_is_positive_sum():
    provider = FakeProvider(PROVIDER_READINGS)
    assert classify_volume(RECEIPT, '2024-01-01', '2024-01-03', provider) == 150.0


def test_delivery_is_negated():
    provider = FakeProvider(PROVIDER_READINGS)
    assert classify_volume(DELIVERY, '2024-01-01', '2024-01-03', provider) == -100.0


def test_compressor_station_is_zero():
    provider = FakeProvider(PROVIDER_READINGS)
    assert classify_volume(STATION, '2024-01-01', '2024-01-03', provider) == 0.0
    assert provider.calls == []


def test_end_is_exclusive():
    provider = FakeProvider(PROVIDER_READINGS)
    assert classify_volume(RECEIPT, '2024-01-01', '2024-01-02', provider) == 100.0


def test_empty_range_uses_start_day():
    provider = FakeProvider(PROVIDER_READINGS)
    assert classify_volume(RECEIPT, '2024-01-02', '2024-01-02', provider) == 50.0
    assert classify_volume(DELIVERY, '2024-01-02', '2024-01-01', provider) == -20.0


def test_missing_readings_are_zero():
    provider = FakeProvider({})
    assert classify_volume(RECEIPT, '2024-01-01', '2024-01-08', provider) == 0.0
    assert len(provider.calls) == 7


def test_classify_volumes_by_point_id():
    provider = FakeProvider(PROVIDER_READINGS)
    volumes = classify_volumes([RECEIPT, STATION, DELIVERY], '2024-01-01', '2024-01-02', provider)
    assert volumes == {1: 100.0, 2: 0.0, 3: -80.0}
