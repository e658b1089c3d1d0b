"""
Bounded pedigree, descendant and hourglass views rooted at one person
"""

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import date

from tree_app.repositories.graph_store import GraphStore, PersonSummary, sort_ids
from tree_app.services.cancellation import CancellationToken, check_cancelled
from tree_app.services.exceptions import DepthExceededError, ValidationError
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

MAX_GENERATIONS = 10


class ViewMode(str, enum.Enum):
    PEDIGREE = 'pedigree'
    DESCENDANTS = 'descendants'
    HOURGLASS = 'hourglass'


@dataclass(frozen=True)
class TreePersonNode:
    id: uuid.UUID
    generation_level: int
    relationship_type: str
    parent_id: uuid.UUID | None = None
    spouse_of_id: uuid.UUID | None = None
    spouse_union_id: uuid.UUID | None = None
    has_more_ancestors: bool = False
    has_more_descendants: bool = False
    person: PersonSummary | None = None

    def to_dict(self) -> dict:
        data = {
            'id': str(self.id),
            'generation_level': self.generation_level,
            'relationship_type': self.relationship_type,
            'parent_id': str(self.parent_id) if self.parent_id else None,
            'spouse_of_id': str(self.spouse_of_id) if self.spouse_of_id else None,
            'spouse_union_id': str(self.spouse_union_id) if self.spouse_union_id else None,
            'has_more_ancestors': self.has_more_ancestors,
            'has_more_descendants': self.has_more_descendants,
        }
        if self.person is not None:
            person = self.person.to_dict()
            person.pop('id')
            data.update(person)
        return data


@dataclass
class TreeView:
    root_person_id: uuid.UUID
    view_mode: ViewMode
    persons: list[TreePersonNode] = field(default_factory=list)

    @property
    def total_persons(self) -> int:
        return len(self.persons)

    def to_dict(self) -> dict:
        return {
            'root_person_id': str(self.root_person_id),
            'view_mode': self.view_mode.value,
            'total_persons': self.total_persons,
            'persons': [node.to_dict() for node in self.persons],
        }

    def to_nested(self) -> dict:
        """Rooted tree with parents / children / spouses arrays per node"""
        entries = {}
        for node in self.persons:
            entry = node.to_dict()
            entry.update({'parents': [], 'children': [], 'spouses': []})
            entries[node.id] = entry

        for node in self.persons:
            entry = entries[node.id]
            if node.relationship_type == 'spouse' and node.spouse_of_id in entries:
                entries[node.spouse_of_id]['spouses'].append(entry)
            elif node.relationship_type == 'ancestor' and node.parent_id in entries:
                entries[node.parent_id]['parents'].append(entry)
            elif node.relationship_type == 'descendant' and node.parent_id in entries:
                entries[node.parent_id]['children'].append(entry)
        return entries[self.root_person_id]


def tree_view_from_dict(data: dict, org_id: uuid.UUID | None = None) -> TreeView:
    """Rebuild a TreeView from its cached dictionary form"""
    nodes = []
    for entry in data['persons']:
        person = None
        if 'sex' in entry:
            person = PersonSummary(
                id=uuid.UUID(entry['id']),
                org_id=org_id,
                display_name=entry.get('display_name'),
                sex=entry['sex'],
                birth_date=_parse_date(entry.get('birth_date')),
                birth_precision=entry.get('birth_precision', 'unknown'),
                death_date=_parse_date(entry.get('death_date')),
                death_precision=entry.get('death_precision', 'unknown'),
                is_living=entry.get('is_living', True),
            )
        nodes.append(TreePersonNode(
            id=uuid.UUID(entry['id']),
            generation_level=entry['generation_level'],
            relationship_type=entry['relationship_type'],
            parent_id=_parse_uuid(entry.get('parent_id')),
            spouse_of_id=_parse_uuid(entry.get('spouse_of_id')),
            spouse_union_id=_parse_uuid(entry.get('spouse_union_id')),
            has_more_ancestors=entry['has_more_ancestors'],
            has_more_descendants=entry['has_more_descendants'],
            person=person,
        ))
    return TreeView(uuid.UUID(data['root_person_id']), ViewMode(data['view_mode']), nodes)


def _parse_uuid(value):
    return uuid.UUID(value) if value else None


def _parse_date(value):
    return date.fromisoformat(value) if value else None


class _Traversal:
    """Request-local state shared by the passes of one view"""

    def __init__(self, root_id: uuid.UUID):
        self.order: list[uuid.UUID] = [root_id]
        self.nodes: dict[uuid.UUID, TreePersonNode] = {
            root_id: TreePersonNode(root_id, 0, 'root'),
        }

    def add_blood(self, node: TreePersonNode) -> bool:
        existing = self.nodes.get(node.id)
        if existing is not None and existing.relationship_type != 'spouse':
            return False
        if existing is None:
            self.order.append(node.id)
        # A person found by blood replaces an earlier spouse entry
        self.nodes[node.id] = node
        return True

    def add_spouse(self, node: TreePersonNode):
        if node.id not in self.nodes:
            self.order.append(node.id)
            self.nodes[node.id] = node

    def flag(self, person_id: uuid.UUID, **flags):
        self.nodes[person_id] = replace(self.nodes[person_id], **flags)


class TreeMaterializer:
    """
    Generation-layer BFS with one batched adjacency fetch per layer.

    Ancestors get negative generation levels, descendants positive ones and
    the root level 0. Spouses, when requested, are leaves at the level of
    the blood relative they belong to.
    """

    def __init__(self, graph_store: GraphStore, max_generations: int = MAX_GENERATIONS):
        self.graph_store = graph_store
        self.max_generations = max_generations
        self.logger = get_project_logger(self.__class__.__module__)

    def _validate(self, generations: int, parameter: str):
        if not isinstance(generations, int) or isinstance(generations, bool):
            raise ValidationError(f"{parameter} must be an integer, got {generations!r}")
        if generations < 0:
            raise ValidationError(f"{parameter} must not be negative")
        if generations > self.max_generations:
            raise DepthExceededError(generations, self.max_generations, parameter)

    def build_pedigree(self, person_id: uuid.UUID, org_id: uuid.UUID, generations: int,
                       include_spouses: bool = False, cancel_token: CancellationToken | None = None) -> TreeView:
        self._validate(generations, 'generations')
        return self._build(person_id, org_id, ViewMode.PEDIGREE, generations, 0, include_spouses, cancel_token)

    def build_descendants(self, person_id: uuid.UUID, org_id: uuid.UUID, generations: int,
                          include_spouses: bool = False, cancel_token: CancellationToken | None = None) -> TreeView:
        self._validate(generations, 'generations')
        return self._build(person_id, org_id, ViewMode.DESCENDANTS, 0, generations, include_spouses, cancel_token)

    def build_hourglass(self, person_id: uuid.UUID, org_id: uuid.UUID, ancestor_generations: int,
                        descendant_generations: int, include_spouses: bool = False,
                        cancel_token: CancellationToken | None = None) -> TreeView:
        self._validate(ancestor_generations, 'ancestor_generations')
        self._validate(descendant_generations, 'descendant_generations')
        return self._build(person_id, org_id, ViewMode.HOURGLASS, ancestor_generations,
                           descendant_generations, include_spouses, cancel_token)

    def _build(self, person_id, org_id, view_mode, ancestor_generations, descendant_generations,
               include_spouses, cancel_token) -> TreeView:
        root = self.graph_store.get_person_summary(person_id, org_id)
        traversal = _Traversal(person_id)

        if include_spouses:
            self._add_spouses(traversal, [person_id], 0, org_id)
        if view_mode in (ViewMode.PEDIGREE, ViewMode.HOURGLASS):
            self._walk(traversal, person_id, org_id, ancestor_generations, up=True,
                       include_spouses=include_spouses, cancel_token=cancel_token)
        if view_mode in (ViewMode.DESCENDANTS, ViewMode.HOURGLASS):
            self._walk(traversal, person_id, org_id, descendant_generations, up=False,
                       include_spouses=include_spouses, cancel_token=cancel_token)

        summaries = self.graph_store.get_person_summaries(traversal.order, org_id)
        summaries[person_id] = root
        persons = [
            replace(traversal.nodes[pid], person=summaries.get(pid))
            for pid in traversal.order
            if pid in summaries
        ]
        self.logger.debug(
            f"Built {view_mode.value} view for {person_id} in org {org_id}: {len(persons)} persons"
        )
        return TreeView(person_id, view_mode, persons)

    def _walk(self, traversal: _Traversal, root_id, org_id, generations: int, up: bool,
              include_spouses: bool, cancel_token):
        fetch = self.graph_store.get_parents_batch if up else self.graph_store.get_children_batch
        relationship = 'ancestor' if up else 'descendant'
        sign = -1 if up else 1
        layer = [root_id]

        for depth in range(1, generations + 1):
            check_cancelled(cancel_token, f"{relationship} traversal")
            adjacency = fetch(layer, org_id)
            next_layer = []
            for person_id in layer:
                for relative_id in adjacency.get(person_id, []):
                    node = TreePersonNode(relative_id, sign * depth, relationship, parent_id=person_id)
                    if traversal.add_blood(node):
                        next_layer.append(relative_id)
            layer = sort_ids(dict.fromkeys(next_layer))
            if include_spouses and layer:
                self._add_spouses(traversal, layer, sign * depth, org_id)
            if not layer:
                return

        # Boundary layer: one more lookup tells whether anything was cut off
        check_cancelled(cancel_token, f"{relationship} traversal")
        beyond = fetch(layer, org_id)
        flag = 'has_more_ancestors' if up else 'has_more_descendants'
        for person_id in layer:
            if beyond.get(person_id):
                traversal.flag(person_id, **{flag: True})

    def _add_spouses(self, traversal: _Traversal, layer, level: int, org_id):
        partners = self.graph_store.get_union_partners_batch(layer, org_id)
        for person_id in layer:
            for partner in partners.get(person_id, []):
                traversal.add_spouse(TreePersonNode(
                    partner.person_id, level, 'spouse',
                    spouse_of_id=person_id, spouse_union_id=partner.union_id,
                ))
