"""
Flat-file data store for pipeline networks.

Networks, points, segments, volume readings and calculated flows are kept as CSV
tables in one data directory and read with pandas. Topology and readings are
loaded lazily and cached; call clear_cache() to pick up external edits.

Canonical flow records are held in a dictionary keyed by (segment_id, flow_date),
so at most one record can exist per key. Writes happen inside transaction(),
which holds the store lock and a file lock shared by every store on the same
flows file for the whole write phase. It rolls back the in-memory records on
failure and commits through a temporary file and os.replace. A flows file whose
content changed on disk since it was loaded is reported as a ConflictError
instead of being overwritten.
"""
import hashlib
import logging
import os
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd
from dynaconf import Dynaconf
from filelock import FileLock, Timeout

from gasflow.data_structures import (
    DateLike, Network, Point, PointVolume, Segment, SegmentFlow, to_day
)
from gasflow.errors import ConflictError, DataAccessError

logger = logging.getLogger(__name__)

FlowKey = Tuple[int, pd.Timestamp]

# Seconds to wait for another writer to release the flows file
LOCK_TIMEOUT = 30

TABLE_COLUMNS = {
    'networks': ['id', 'name', 'is_active', 'description'],
    'points': ['id', 'name', 'point_type', 'network_id', 'is_active',
               'latitude', 'longitude', 'description'],
    'segments': ['id', 'name', 'network_id', 'start_point_id', 'end_point_id',
                 'capacity', 'capacity_unit', 'is_active', 'description'],
    'volumes': ['point_id', 'date', 'volume', 'volume_type', 'description'],
    'flows': ['id', 'segment_id', 'start_point_id', 'end_point_id', 'flow_date',
              'volume_from_prev_point', 'volume_change', 'volume_pass_thru',
              'created_date', 'modified_date', 'notes']
}

REQUIRED_COLUMNS = {
    'networks': ['id'],
    'points': ['id', 'point_type'],
    'segments': ['id', 'network_id', 'start_point_id', 'end_point_id'],
    'volumes': ['point_id', 'date', 'volume', 'volume_type'],
    'flows': ['segment_id', 'flow_date']
}

DATE_COLUMNS = {
    'volumes': ['date'],
    'flows': ['flow_date', 'created_date', 'modified_date']
}


class NetworkStore:
    """Read/write access to network topology, volume readings and segment flows."""

    def __init__(self, data_dir: str | Path, files: Optional[Dict[str, str]] = None):
        self.data_dir = Path(data_dir)
        self.files = {table: f'{table}.csv' for table in TABLE_COLUMNS}
        if files:
            self.files.update(files)

        self._lock = threading.RLock()
        flows_path = self._path('flows')
        self._file_lock = FileLock(str(flows_path.with_name(flows_path.name + '.lock')))
        self._in_transaction = False
        self._networks: Optional[Dict[int, Network]] = None
        self._points: Optional[Dict[int, Point]] = None
        self._segments: Optional[Dict[int, Segment]] = None
        self._volumes: Optional[Dict[Tuple[int, pd.Timestamp, str], float]] = None
        self._flows: Optional[Dict[FlowKey, SegmentFlow]] = None
        self._flows_stamp = None
        self._last_flow_id = 0

    @classmethod
    def from_config(cls, config: Dynaconf) -> 'NetworkStore':
        """Create a store for the data directory and file names of a configuration."""
        return cls(config.data_directory, dict(config.files))

    # Topology

    def get_active_networks(self) -> List[Network]:
        return [n for n in self._load_networks().values() if n.is_active]

    def get_network_by_id(self, network_id: int) -> Optional[Network]:
        return self._load_networks().get(int(network_id))

    def get_active_segments_by_network(self, network_id: int) -> List[Segment]:
        return [s for s in self._load_segments().values()
                if s.network_id == int(network_id) and s.is_active]

    def get_active_points_by_ids(self, point_ids: Iterable[int]) -> List[Point]:
        wanted = {int(pid) for pid in point_ids}
        return [p for pid, p in self._load_points().items()
                if pid in wanted and p.is_active]

    def get_points_by_network(self, network_id: int) -> List[Point]:
        return [p for p in self._load_points().values()
                if p.network_id == int(network_id) and p.is_active]

    # Volume readings

    def get_point_volume(self, point_id: int, date: DateLike, volume_type: str) -> float:
        """Reading of the given type for a point and day, 0 when absent."""
        return self._load_volumes().get((int(point_id), to_day(date), volume_type), 0.0)

    def get_volumes_by_date(self, date: DateLike) -> List[PointVolume]:
        day = to_day(date)
        return [PointVolume(point_id=pid, date=d, volume=volume, volume_type=vtype)
                for (pid, d, vtype), volume in self._load_volumes().items() if d == day]

    # Segment flows

    def upsert_flow(self, flow: SegmentFlow) -> SegmentFlow:
        """
        Insert or update the canonical record for (segment_id, flow_date).

        An existing record keeps its id, notes and created date; only the volume
        fields and the modified date change. Outside a transaction the change is
        committed immediately.
        """
        with self.transaction():
            flows = self._load_flows()
            existing = flows.get(flow.key)
            now = pd.Timestamp.now()

            if existing is not None:
                existing.volume_from_prev_point = flow.volume_from_prev_point
                existing.volume_change = flow.volume_change
                existing.volume_pass_thru = flow.volume_pass_thru
                existing.modified_date = now
                stored = existing
            else:
                self._last_flow_id += 1
                created = flow.created_date if flow.created_date is not None else now
                stored = replace(flow, id=self._last_flow_id, created_date=created, modified_date=None)
                flows[stored.key] = stored

            return replace(stored)

    def list_flows(self, segment_ids: Optional[Iterable[int]] = None,
                   start: Optional[DateLike] = None, end: Optional[DateLike] = None) -> List[SegmentFlow]:
        """Stored flows ordered by date and segment, optionally filtered; end is exclusive."""
        wanted = {int(sid) for sid in segment_ids} if segment_ids is not None else None
        start = to_day(start) if start is not None else None
        end = to_day(end) if end is not None else None

        with self._lock:
            flows = [replace(f) for f in self._load_flows().values()
                     if (wanted is None or f.segment_id in wanted)
                     and (start is None or f.flow_date >= start)
                     and (end is None or f.flow_date < end)]
        return sorted(flows, key=lambda f: (f.flow_date, f.segment_id))

    @contextmanager
    def transaction(self):
        """
        Critical section for writing flows.

        Commits all upserts made inside the block at once; any exception
        restores the records as they were when the block started.
        """
        with self._lock:
            if self._in_transaction:
                yield self
                return

            with self._flows_file_lock():
                snapshot = {key: replace(f) for key, f in self._load_flows().items()}
                last_id = self._last_flow_id
                self._in_transaction = True
                try:
                    yield self
                    self.save_flows()
                except BaseException:
                    self._flows = snapshot
                    self._last_flow_id = last_id
                    raise
                finally:
                    self._in_transaction = False

    def save_flows(self) -> None:
        """Write the flows table, refusing to overwrite changes made by another writer."""
        with self._lock:
            if self._flows is None:
                return

            with self._flows_file_lock() as path:
                if self._stamp(path) != self._flows_stamp:
                    raise ConflictError(f"Flows file {path} was modified by another writer")

                records = [asdict(f) for f in sorted(self._flows.values(),
                                                     key=lambda f: (f.flow_date, f.segment_id))]
                df = pd.DataFrame(records, columns=TABLE_COLUMNS['flows'])
                tmp_path = path.with_name(path.name + '.tmp')
                try:
                    df.to_csv(tmp_path, index=False)
                    os.replace(tmp_path, path)
                except OSError as exc:
                    raise DataAccessError(f"Cannot write flows table {path}: {exc}") from exc

                self._flows_stamp = self._stamp(path)
            logger.debug("Saved %d flow records to %s", len(records), path)

    def clear_cache(self) -> None:
        with self._lock:
            self._networks = None
            self._points = None
            self._segments = None
            self._volumes = None
            self._flows = None
            self._flows_stamp = None
            self._last_flow_id = 0

    # Loading

    def _path(self, table: str) -> Path:
        return self.data_dir / self.files[table]

    @contextmanager
    def _flows_file_lock(self):
        """Hold the lock shared by all stores writing the same flows file."""
        path = self._path('flows')
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._file_lock.acquire(timeout=LOCK_TIMEOUT)
        except Timeout as exc:
            raise ConflictError(f"Flows file {path} is locked by another writer") from exc
        except OSError as exc:
            raise DataAccessError(f"Cannot lock flows file {path}: {exc}") from exc
        try:
            yield path
        finally:
            self._file_lock.release()

    @staticmethod
    def _stamp(path: Path) -> Optional[str]:
        """Digest of the file content, None when the file does not exist."""
        try:
            return hashlib.sha1(path.read_bytes()).hexdigest()
        except FileNotFoundError:
            return None

    def _read_table(self, table: str) -> pd.DataFrame:
        path = self._path(table)
        columns = TABLE_COLUMNS[table]
        if not path.is_file():
            logger.debug("No %s table at %s", table, path)
            df = pd.DataFrame(columns=columns)
        else:
            try:
                df = pd.read_csv(path)
            except pd.errors.EmptyDataError:
                df = pd.DataFrame(columns=columns)
            except (OSError, ValueError) as exc:
                raise DataAccessError(f"Cannot read {table} table {path}: {exc}") from exc

        missing = [col for col in REQUIRED_COLUMNS[table] if col not in df.columns]
        if missing:
            raise DataAccessError(f"{table} table {path} is missing columns: {', '.join(missing)}")

        for col in columns:
            if col not in df.columns:
                df[col] = None
        try:
            for col in DATE_COLUMNS.get(table, []):
                df[col] = pd.to_datetime(df[col], format='ISO8601')
        except (TypeError, ValueError) as exc:
            raise DataAccessError(f"Invalid dates in {table} table {path}: {exc}") from exc

        return df[columns]

    def _build(self, table: str, factory: Callable[[Dict[str, Any]], Any]) -> List[Any]:
        rows = self._read_table(table).to_dict(orient='records')
        items = []
        for row in rows:
            try:
                items.append(factory(row))
            except (TypeError, ValueError) as exc:
                raise DataAccessError(f"Invalid row in {table} table: {row} ({exc})") from exc
        return items

    def _load_networks(self) -> Dict[int, Network]:
        with self._lock:
            if self._networks is None:
                networks = self._build('networks', lambda row: Network(
                    id=int(row['id']),
                    name=_text(row['name']),
                    is_active=_flag(row['is_active']),
                    description=_optional(row['description'])
                ))
                self._networks = {n.id: n for n in networks}
            return self._networks

    def _load_points(self) -> Dict[int, Point]:
        with self._lock:
            if self._points is None:
                points = self._build('points', lambda row: Point(
                    id=int(row['id']),
                    name=_text(row['name']),
                    point_type=row['point_type'],
                    network_id=int(_optional(row['network_id'], 0)),
                    is_active=_flag(row['is_active']),
                    latitude=_optional_float(row['latitude']),
                    longitude=_optional_float(row['longitude']),
                    description=_optional(row['description'])
                ))
                self._points = {p.id: p for p in sorted(points, key=lambda p: p.id)}
            return self._points

    def _load_segments(self) -> Dict[int, Segment]:
        with self._lock:
            if self._segments is None:
                segments = self._build('segments', lambda row: Segment(
                    id=int(row['id']),
                    name=_text(row['name']),
                    network_id=int(row['network_id']),
                    start_point_id=int(row['start_point_id']),
                    end_point_id=int(row['end_point_id']),
                    capacity=float(_optional(row['capacity'], 0.0)),
                    capacity_unit=_text(row['capacity_unit'], 'MCF'),
                    is_active=_flag(row['is_active']),
                    description=_optional(row['description'])
                ))
                self._segments = {s.id: s for s in sorted(segments, key=lambda s: s.id)}
            return self._segments

    def _load_volumes(self) -> Dict[Tuple[int, pd.Timestamp, str], float]:
        with self._lock:
            if self._volumes is None:
                df = self._read_table('volumes')
                try:
                    df['point_id'] = df['point_id'].astype(int)
                    df['volume'] = pd.to_numeric(df['volume']).fillna(0.0)
                except (TypeError, ValueError) as exc:
                    raise DataAccessError(f"Invalid volume readings: {exc}") from exc
                df['date'] = df['date'].dt.normalize()
                df['volume_type'] = df['volume_type'].astype(str).str.strip()

                grouped = df.groupby(['point_id', 'date', 'volume_type'])['volume'].agg(['sum', 'size'])
                duplicates = int((grouped['size'] > 1).sum())
                if duplicates:
                    logger.warning("%d point/date/type keys have multiple readings; readings summed",
                                   duplicates)

                self._volumes = {(int(pid), pd.Timestamp(day), str(vtype)): float(total)
                                 for (pid, day, vtype), total in grouped['sum'].items()}
            return self._volumes

    def _load_flows(self) -> Dict[FlowKey, SegmentFlow]:
        with self._lock:
            if self._flows is None:
                path = self._path('flows')
                # Stamp and rows must come from the same version of the file
                file_lock = self._flows_file_lock() if path.parent.is_dir() else nullcontext()
                with file_lock:
                    self._flows_stamp = self._stamp(path)
                    rows = self._build('flows', _flow_from_row)
                flows = {}
                for flow in rows:
                    if flow.key in flows:
                        logger.warning("Duplicate flow record for segment %d on %s ignored",
                                       flow.segment_id, flow.flow_date.date())
                        continue
                    flows[flow.key] = flow
                self._flows = flows
                self._last_flow_id = max((f.id for f in flows.values() if f.id is not None), default=0)
            return self._flows


def _flow_from_row(row: Dict[str, Any]) -> SegmentFlow:
    flow_id = _optional(row['id'])
    return SegmentFlow(
        id=int(flow_id) if flow_id is not None else None,
        segment_id=int(row['segment_id']),
        start_point_id=int(_optional(row['start_point_id'], 0)),
        end_point_id=int(_optional(row['end_point_id'], 0)),
        flow_date=row['flow_date'],
        volume_from_prev_point=float(_optional(row['volume_from_prev_point'], 0.0)),
        volume_change=float(_optional(row['volume_change'], 0.0)),
        volume_pass_thru=float(_optional(row['volume_pass_thru'], 0.0)),
        created_date=_optional(row['created_date']),
        modified_date=_optional(row['modified_date']),
        notes=_optional(row['notes'])
    )

def _optional(value: Any, default: Any = None) -> Any:
    """Value of a table cell, or default for empty cells (None, NaN, NaT)."""
    if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
        return default
    return value

def _optional_float(value: Any) -> Optional[float]:
    value = _optional(value)
    return float(value) if value is not None else None

def _text(value: Any, default: str = '') -> str:
    return str(_optional(value, default)).strip()

def _flag(value: Any, default: bool = True) -> bool:
    value = _optional(value, default)
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'y')
    return bool(value)
