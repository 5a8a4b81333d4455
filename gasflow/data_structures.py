"""
Data structures for pipeline networks and segment flows.

Networks, points and segments form an arena addressed by integer id. Segments
reference their endpoints by id only; adjacency is derived on demand by the
topology module.
"""
import datetime
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Union

import pandas as pd

from gasflow.units import VolumeUnit

DateLike = Union[str, pd.Timestamp, datetime.date]

def to_day(value: DateLike) -> pd.Timestamp:
    """Convert a date-like value to a timestamp at day granularity."""
    return pd.Timestamp(value).normalize()

def day_range(start: DateLike, end: DateLike) -> pd.DatetimeIndex:
    """Days of [start, end). An empty or inverted range yields the start day only."""
    start, end = to_day(start), to_day(end)
    if end <= start:
        return pd.DatetimeIndex([start])
    return pd.date_range(start, end, freq='D', inclusive='left')


class PointType(IntEnum):
    """Role of a point in the network"""
    RECEIPT = 1
    COMPRESSOR_STATION = 2
    DELIVERY = 3

    @classmethod
    def parse(cls, value: Union['PointType', int, str]) -> 'PointType':
        """Parse a point type from its number or its name ('Receipt', 'CompressorStation', ...)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().replace(' ', '').replace('_', '').lower()
            if key.isdigit():
                return cls(int(key))
            for member in cls:
                if member.name.replace('_', '').lower() == key:
                    return member
            raise ValueError(f"Unknown point type: {value}")
        return cls(int(value))

    @property
    def label(self) -> str:
        return {
            PointType.RECEIPT: 'Receipt',
            PointType.COMPRESSOR_STATION: 'CompressorStation',
            PointType.DELIVERY: 'Delivery',
        }[self]


class VolumeType:
    """Tags distinguishing readings that coexist for one point and date"""
    RECEIPT = 'Receipt'
    DELIVERY = 'Delivery'


@dataclass
class Network:
    """Pipeline network"""
    id: int
    name: str = ''
    is_active: bool = True
    description: Optional[str] = None

    def __str__(self) -> str:
        return self.name


@dataclass
class Point:
    """Receipt point, compressor station or delivery point"""
    id: int
    name: str = ''
    point_type: PointType = PointType.RECEIPT
    network_id: int = 0
    is_active: bool = True
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = None

    def __post_init__(self):
        self.point_type = PointType.parse(self.point_type)


@dataclass
class Segment:
    """Pipeline segment between two points of the same network"""
    id: int
    name: str = ''
    network_id: int = 0
    start_point_id: int = 0
    end_point_id: int = 0
    capacity: float = field(default=0.0, metadata={'unit': 'capacity_unit'})
    capacity_unit: str = 'MCF'
    is_active: bool = True
    description: Optional[str] = None

    def __post_init__(self):
        if self.start_point_id == self.end_point_id:
            raise ValueError(f"Segment {self.id} starts and ends at point {self.start_point_id}")
        if self.capacity < 0:
            raise ValueError(f"Segment {self.id} has negative capacity {self.capacity}")
        self.capacity_unit = VolumeUnit(self.capacity_unit).value


@dataclass
class PointVolume:
    """Volume reading for a point on one day"""
    point_id: int
    date: pd.Timestamp
    volume: float = 0.0
    volume_type: str = VolumeType.RECEIPT
    description: Optional[str] = None

    def __post_init__(self):
        self.date = to_day(self.date)


@dataclass
class SegmentFlow:
    """
    Calculated gas flow through a segment for one flow date.

    Canonical records are unique on (segment_id, flow_date). Capacity metrics
    are not stored here; see gasflow.capacity.
    """
    segment_id: int
    start_point_id: int
    end_point_id: int
    flow_date: pd.Timestamp
    volume_from_prev_point: float = 0.0
    volume_change: float = 0.0
    volume_pass_thru: float = 0.0
    id: Optional[int] = None
    created_date: Optional[pd.Timestamp] = None
    modified_date: Optional[pd.Timestamp] = None
    notes: Optional[str] = None

    def __post_init__(self):
        self.flow_date = to_day(self.flow_date)

    @property
    def key(self) -> tuple:
        return (self.segment_id, self.flow_date)

    @property
    def actual_flow(self) -> float:
        return abs(self.volume_pass_thru)


@dataclass
class Period:
    """Named calculation period covering [start_time, end_time)"""
    name: str
    start_time: pd.Timestamp
    end_time: pd.Timestamp

    def __post_init__(self):
        self.start_time = to_day(self.start_time)
        self.end_time = to_day(self.end_time)

    def __str__(self) -> str:
        return self.name

    @property
    def days(self) -> pd.DatetimeIndex:
        """Days covered by the period"""
        return day_range(self.start_time, self.end_time)

    @staticmethod
    def common_periods(today: Optional[DateLike] = None) -> List['Period']:
        """Standard periods relative to today."""
        today = to_day(today if today is not None else pd.Timestamp.today())
        one_day = pd.Timedelta(days=1)
        month_start = today.replace(day=1)
        next_month = month_start + pd.DateOffset(months=1)
        last_month = month_start - pd.DateOffset(months=1)
        return [
            Period('Today', today, today + one_day),
            Period('Yesterday', today - one_day, today),
            Period('Last 7 Days', today - pd.Timedelta(days=7), today + one_day),
            Period('Last 30 Days', today - pd.Timedelta(days=30), today + one_day),
            Period('This Month', month_start, next_month),
            Period('Last Month', last_month, month_start),
        ]

    @staticmethod
    def by_name(name: str, today: Optional[DateLike] = None) -> 'Period':
        for period in Period.common_periods(today):
            if period.name.lower() == name.strip().lower():
                return period
        raise ValueError(f"Unknown period: {name}")
