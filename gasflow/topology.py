"""
Topology resolution for flow calculation runs.

A NetworkTopology is the arena of active segments and points of one network.
Adjacency is derived on demand from a networkx MultiDiGraph whose nodes are
point ids and whose edge keys are segment ids; points and segments never hold
references to each other.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List

import networkx as nx

from gasflow.data_structures import DateLike, Network, Point, PointType, Segment, to_day
from gasflow.errors import NotFound

logger = logging.getLogger(__name__)


@dataclass
class NetworkTopology:
    """Active segments and the active points they reference"""
    network: Network
    segments: List[Segment]
    points: List[Point]
    graph: nx.MultiDiGraph = field(default=None, repr=False)

    def __post_init__(self):
        if self.graph is None:
            self.graph = build_graph(self.segments, self.points)

    @property
    def point_map(self) -> Dict[int, Point]:
        return {p.id: p for p in self.points}

    @property
    def segment_map(self) -> Dict[int, Segment]:
        return {s.id: s for s in self.segments}

    def outgoing_segments(self, point_id: int) -> List[Segment]:
        """Active segments starting at a point"""
        if point_id not in self.graph:
            return []
        segments = self.segment_map
        return [segments[key] for _, _, key in self.graph.out_edges(point_id, keys=True)]

    def incoming_segments(self, point_id: int) -> List[Segment]:
        """Active segments ending at a point"""
        if point_id not in self.graph:
            return []
        segments = self.segment_map
        return [segments[key] for _, _, key in self.graph.in_edges(point_id, keys=True)]

    def points_of_type(self, point_type: PointType) -> List[Point]:
        return [p for p in self.points if p.point_type == point_type]


def build_graph(segments: List[Segment], points: List[Point]) -> nx.MultiDiGraph:
    """Directed multigraph of the network: point ids as nodes, segment ids as edge keys."""
    graph = nx.MultiDiGraph()
    for point in points:
        graph.add_node(point.id, point_type=point.point_type, name=point.name)
    for segment in segments:
        graph.add_edge(segment.start_point_id, segment.end_point_id, key=segment.id,
                       capacity=segment.capacity, name=segment.name)
    return graph


def resolve_topology(store, network_id: int, date: DateLike) -> NetworkTopology:
    """
    Resolve the active topology of a network.

    Args:
        store: Data provider with get_network_by_id, get_active_segments_by_network
            and get_active_points_by_ids
        network_id: Network to resolve
        date: Reference date of the calculation run

    Returns:
        NetworkTopology: Active segments of the network and the active points they use

    Raises:
        NotFound: If the network does not exist or is inactive
    """
    network = store.get_network_by_id(network_id)
    if network is None or not network.is_active:
        raise NotFound('Network', network_id)

    segments = store.get_active_segments_by_network(network.id)
    point_ids = sorted({pid for s in segments for pid in (s.start_point_id, s.end_point_id)})
    points = store.get_active_points_by_ids(point_ids)

    logger.debug("Network %d on %s: %d segments and %d points",
                 network.id, to_day(date).date(), len(segments), len(points))

    topology = NetworkTopology(network=network, segments=segments, points=points)
    for issue in check_topology(topology):
        logger.warning(issue)
    return topology


def check_topology(topology: NetworkTopology) -> List[str]:
    """Describe segments whose endpoints are inactive, missing or in another network."""
    issues = []
    points = topology.point_map
    for segment in topology.segments:
        for point_id in (segment.start_point_id, segment.end_point_id):
            point = points.get(point_id)
            if point is None:
                issues.append(f"Segment {segment.id} references missing or inactive point {point_id}")
            elif point.network_id != segment.network_id:
                issues.append(f"Segment {segment.id} references point {point_id} "
                              f"of network {point.network_id}")
    return issues
