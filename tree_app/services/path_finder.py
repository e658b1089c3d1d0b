"""
Shortest relationship path search between two persons

The search is a layered bidirectional BFS over parent, child and spouse
edges. Adjacency is fetched in one batch per frontier layer, so the number
of GraphStore round-trips grows with the search depth rather than with the
number of persons visited.
"""

import enum
import uuid
from dataclasses import dataclass

from tree_app.repositories.graph_store import GraphStore
from tree_app.services.cancellation import CancellationToken, check_cancelled
from tree_app.services.exceptions import DepthExceededError, NotFoundError, ValidationError
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

DEFAULT_MAX_DEPTH = 15
MAX_DEPTH_CAP = 20


class EdgeType(str, enum.Enum):
    """Edge from one path node to the next.

    PARENT means the next person is the parent of the current one (moving
    up a generation), CHILD means moving down, SPOUSE means a union partner.
    """
    PARENT = 'parent'
    CHILD = 'child'
    SPOUSE = 'spouse'

    def inverse(self) -> 'EdgeType':
        if self is EdgeType.PARENT:
            return EdgeType.CHILD
        if self is EdgeType.CHILD:
            return EdgeType.PARENT
        return EdgeType.SPOUSE


@dataclass(frozen=True)
class PathNode:
    person_id: uuid.UUID
    edge_to_next: EdgeType | None = None

    def to_dict(self) -> dict:
        return {
            'person_id': str(self.person_id),
            'edge_to_next': self.edge_to_next.value if self.edge_to_next else None,
        }


@dataclass(frozen=True)
class RelationshipPath:
    """Ordered path from the first requested person to the second"""
    path_found: bool
    nodes: tuple[PathNode, ...] = ()

    @classmethod
    def from_steps(cls, person_ids, edges) -> 'RelationshipPath':
        person_ids = list(person_ids)
        edges = list(edges)
        if len(edges) != len(person_ids) - 1:
            raise ValueError("A path needs exactly one edge between consecutive persons")
        nodes = [PathNode(pid, edge) for pid, edge in zip(person_ids, edges + [None])]
        return cls(True, tuple(nodes))

    @classmethod
    def not_found(cls) -> 'RelationshipPath':
        return cls(False, ())

    @property
    def length(self) -> int:
        return max(len(self.nodes) - 1, 0)

    @property
    def person_ids(self) -> list[uuid.UUID]:
        return [node.person_id for node in self.nodes]

    @property
    def edges(self) -> list[EdgeType]:
        return [node.edge_to_next for node in self.nodes[:-1]]

    def reversed(self) -> 'RelationshipPath':
        if not self.path_found:
            return self
        edges = [edge.inverse() for edge in reversed(self.edges)]
        return RelationshipPath.from_steps(reversed(self.person_ids), edges)

    def to_dict(self) -> dict:
        return {
            'path_found': self.path_found,
            'nodes': [node.to_dict() for node in self.nodes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'RelationshipPath':
        nodes = tuple(
            PathNode(uuid.UUID(node['person_id']),
                     EdgeType(node['edge_to_next']) if node['edge_to_next'] else None)
            for node in data['nodes']
        )
        return cls(data['path_found'], nodes)


@dataclass(frozen=True)
class _Best:
    """Best partial path to or from a search state under the tie-break order"""
    spouse_count: int
    id_strings: tuple[str, ...]
    person_ids: tuple[uuid.UUID, ...]
    edges: tuple[EdgeType, ...]

    @property
    def key(self):
        return (self.spouse_count, self.id_strings)


class _SearchSide:
    """
    One direction of the bidirectional search.

    States are (person_id, spouse_flag). On the forward side the flag means
    the person was reached through a spouse edge; on the backward side it
    means the edge leaving the person towards the target is a spouse edge.
    Either way a flagged state may not take another spouse edge, which keeps
    spouse edges from following each other. A person is therefore expanded
    at most once per flag value.
    """

    def __init__(self, origin: uuid.UUID, forward: bool):
        self.forward = forward
        start = (origin, False)
        self.distance = {start: 0}
        self.predecessors = {start: []}
        self.frontier = [start]
        self.depth = 0
        self._best = {
            start: _Best(0, (str(origin),), (origin,), ()),
        }

    def states_for(self, person_id: uuid.UUID):
        for flag in (False, True):
            state = (person_id, flag)
            if state in self.distance:
                yield state, self.distance[state]

    def expand(self, parents: dict, children: dict, partners: dict):
        """Advance the frontier by one layer using pre-fetched adjacency"""
        next_layer = {}
        for state in self.frontier:
            person_id, flag = state
            if self.forward:
                moves = [(pid, EdgeType.PARENT) for pid in parents.get(person_id, [])]
                moves += [(pid, EdgeType.CHILD) for pid in children.get(person_id, [])]
            else:
                # Edge direction is from the discovered person towards this one
                moves = [(pid, EdgeType.CHILD) for pid in parents.get(person_id, [])]
                moves += [(pid, EdgeType.PARENT) for pid in children.get(person_id, [])]
            if not flag:
                moves += [(pid, EdgeType.SPOUSE) for pid in partners.get(person_id, [])]

            for neighbour_id, edge in moves:
                neighbour_state = (neighbour_id, edge is EdgeType.SPOUSE)
                if self._dominated(neighbour_state):
                    continue
                if neighbour_state not in self.distance:
                    self.distance[neighbour_state] = self.depth + 1
                    self.predecessors[neighbour_state] = []
                    next_layer[neighbour_state] = None
                if self.distance[neighbour_state] == self.depth + 1:
                    self.predecessors[neighbour_state].append((state, edge))

        self.depth += 1
        self.frontier = sorted(next_layer, key=lambda s: (str(s[0]), s[1]))
        return self.frontier

    def _dominated(self, state) -> bool:
        # An earlier unflagged arrival can do everything a flagged one can
        person_id, flag = state
        if not flag:
            return False
        return self.distance.get((person_id, False), self.depth + 1) <= self.depth

    def best(self, state) -> _Best:
        """Best partial path for a state, memoized in layer order"""
        cached = self._best.get(state)
        if cached is not None:
            return cached

        person_id = state[0]
        candidates = []
        for previous, edge in self.predecessors[state]:
            prior = self.best(previous)
            spouse_count = prior.spouse_count + (1 if edge is EdgeType.SPOUSE else 0)
            if self.forward:
                candidates.append(_Best(
                    spouse_count,
                    prior.id_strings + (str(person_id),),
                    prior.person_ids + (person_id,),
                    prior.edges + (edge,),
                ))
            else:
                candidates.append(_Best(
                    spouse_count,
                    (str(person_id),) + prior.id_strings,
                    (person_id,) + prior.person_ids,
                    (edge,) + prior.edges,
                ))

        result = min(candidates, key=lambda c: c.key)
        self._best[state] = result
        return result


class PathFinder:
    """Finds the canonical shortest path between two persons of a tenant"""

    def __init__(self, graph_store: GraphStore, max_depth_cap: int = MAX_DEPTH_CAP):
        self.graph_store = graph_store
        self.max_depth_cap = max_depth_cap
        self.logger = get_project_logger(self.__class__.__module__)

    def validate_depth(self, max_depth: int):
        if max_depth is None or not isinstance(max_depth, int) or isinstance(max_depth, bool):
            raise ValidationError(f"max_depth must be an integer, got {max_depth!r}")
        if max_depth < 0:
            raise ValidationError("max_depth must not be negative")
        if max_depth > self.max_depth_cap:
            raise DepthExceededError(max_depth, self.max_depth_cap, 'max_depth')

    def find_path(self, person1_id: uuid.UUID, person2_id: uuid.UUID, org_id: uuid.UUID,
                  max_depth: int = DEFAULT_MAX_DEPTH,
                  cancel_token: CancellationToken | None = None) -> RelationshipPath:
        """
        Find the shortest path from person1 to person2.

        Among equally short paths the one with the fewest spouse edges wins,
        then the lexicographically smallest sequence of person ids. The search
        always runs on the canonically ordered pair (smaller id first) and the
        result is reversed when needed, so find_path(b, a) is the exact inverse
        of find_path(a, b). The id-order tie-break therefore holds for the
        canonical direction only; a reversed query returns that same path
        backwards, which is not always the smallest sequence read from b.

        Raises:
            DepthExceededError: max_depth is above the configured cap
            ValidationError: max_depth is negative or not an integer
            NotFoundError: either person is missing from the tenant
            OperationCancelledError: the token was cancelled between layers
        """
        self.validate_depth(max_depth)

        found = self.graph_store.get_person_summaries([person1_id, person2_id], org_id)
        missing = [str(pid) for pid in (person1_id, person2_id) if pid not in found]
        if missing:
            raise NotFoundError(f"Person(s) not found: {', '.join(missing)}")

        if person1_id == person2_id:
            return RelationshipPath.from_steps([person1_id], [])

        swapped = str(person2_id) < str(person1_id)
        source, target = (person2_id, person1_id) if swapped else (person1_id, person2_id)
        path = self._search(source, target, org_id, max_depth, cancel_token)
        self.logger.debug(
            f"Path search {person1_id} -> {person2_id} in org {org_id}: "
            f"found={path.path_found} length={path.length}"
        )
        return path.reversed() if swapped else path

    def _search(self, source, target, org_id, max_depth, cancel_token) -> RelationshipPath:
        forward = _SearchSide(source, forward=True)
        backward = _SearchSide(target, forward=False)

        while True:
            check_cancelled(cancel_token, "Relationship path search")

            candidates = [
                side for side in (forward, backward)
                if side.frontier and side.depth < max_depth
            ]
            if not candidates:
                return RelationshipPath.not_found()

            # Smaller frontier first; forward wins ties
            side = min(candidates, key=lambda s: (len(s.frontier), 0 if s.forward else 1))
            self._expand_layer(side, org_id)

            best = self._best_meeting(forward, backward)
            if best is not None:
                return RelationshipPath.from_steps(best.person_ids, best.edges)

    def _expand_layer(self, side: _SearchSide, org_id):
        person_ids = list(dict.fromkeys(person_id for person_id, _ in side.frontier))
        spouse_capable = [person_id for person_id, flag in side.frontier if not flag]

        parents = self.graph_store.get_parents_batch(person_ids, org_id)
        children = self.graph_store.get_children_batch(person_ids, org_id)
        partners = {}
        if spouse_capable:
            partner_batch = self.graph_store.get_union_partners_batch(list(dict.fromkeys(spouse_capable)), org_id)
            partners = {
                person_id: list(dict.fromkeys(p.person_id for p in entries))
                for person_id, entries in partner_batch.items()
            }

        side.expand(parents, children, partners)

    def _best_meeting(self, forward: _SearchSide, backward: _SearchSide) -> _Best | None:
        """Best complete path through any valid meeting state, or None"""
        shortest = None
        pairs = []
        for state, forward_distance in forward.distance.items():
            person_id, arrived_by_spouse = state
            for backward_state, backward_distance in backward.states_for(person_id):
                if arrived_by_spouse and backward_state[1]:
                    continue
                total = forward_distance + backward_distance
                if shortest is None or total < shortest:
                    shortest = total
                    pairs = []
                if total == shortest:
                    pairs.append((state, backward_state))

        if shortest is None:
            return None

        best = None
        for forward_state, backward_state in pairs:
            prefix = forward.best(forward_state)
            suffix = backward.best(backward_state)
            combined = _Best(
                prefix.spouse_count + suffix.spouse_count,
                prefix.id_strings + suffix.id_strings[1:],
                prefix.person_ids + suffix.person_ids[1:],
                prefix.edges + suffix.edges,
            )
            if best is None or combined.key < best.key:
                best = combined
        return best
