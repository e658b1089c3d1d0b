"""
Read-side entry points: relationship paths, tree views, family groups and roots
"""

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import date

from tree_app.repositories.graph_store import GraphStore, sort_ids
from tree_app.services import cache_keys
from tree_app.services.base_service import BaseService
from tree_app.services.cancellation import CancellationToken, check_cancelled
from tree_app.services.exceptions import DepthExceededError, ValidationError, handle_service_exceptions
from tree_app.services.path_finder import DEFAULT_MAX_DEPTH, MAX_DEPTH_CAP, PathFinder, RelationshipPath
from tree_app.services.relationship_classifier import NOT_RELATED, Classification, RelationshipClassifier
from tree_app.services.tree_cache import TreeCache
from tree_app.services.tree_materializer import MAX_GENERATIONS, TreeMaterializer, TreeView, ViewMode, tree_view_from_dict
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

DEFAULT_GENERATIONS = 4
DEPTH_POLICY_REJECT = 'reject'
DEPTH_POLICY_CLAMP = 'clamp'


@dataclass
class RelationshipPathResult:
    path_found: bool
    relationship_type: str
    relationship_label: str
    gendered_label: str
    relationship_name_key: str
    path_length: int = 0
    path: list[dict] = field(default_factory=list)
    common_ancestor_id: uuid.UUID | None = None
    generations_from_each_side: tuple[int, int] | None = None
    error_message: str | None = None

    def to_dict(self) -> dict:
        return {
            'path_found': self.path_found,
            'relationship_type': self.relationship_type,
            'relationship_label': self.relationship_label,
            'gendered_label': self.gendered_label,
            'relationship_name_key': self.relationship_name_key,
            'path_length': self.path_length,
            'path': self.path,
            'common_ancestor_id': str(self.common_ancestor_id) if self.common_ancestor_id else None,
            'generations_from_each_side': list(self.generations_from_each_side)
            if self.generations_from_each_side else None,
            'error_message': self.error_message,
        }


class TreeViewService(BaseService):
    """Cache-first facade over PathFinder, RelationshipClassifier and TreeMaterializer"""

    def __init__(self, graph_store: GraphStore, tree_cache: TreeCache,
                 default_max_depth: int = DEFAULT_MAX_DEPTH, max_depth_cap: int = MAX_DEPTH_CAP,
                 max_generations: int = MAX_GENERATIONS, depth_policy: str = DEPTH_POLICY_REJECT,
                 root_persons_limit: int = 50):
        super().__init__()
        if depth_policy not in (DEPTH_POLICY_REJECT, DEPTH_POLICY_CLAMP):
            raise ValueError(f"Unknown depth policy {depth_policy!r}")
        self.graph_store = graph_store
        self.tree_cache = tree_cache
        self.default_max_depth = default_max_depth
        self.max_generations = max_generations
        self.depth_policy = depth_policy
        self.root_persons_limit = root_persons_limit
        self.path_finder = PathFinder(graph_store, max_depth_cap)
        self.classifier = RelationshipClassifier(graph_store)
        self.materializer = TreeMaterializer(graph_store, max_generations)

    # Relationship paths

    @handle_service_exceptions(logger)
    def find_relationship_path(self, person1_id, person2_id, org_id, max_depth: int | None = None,
                               cancel_token: CancellationToken | None = None) -> RelationshipPathResult:
        person1_id = self.parse_id(person1_id, 'person1_id')
        person2_id = self.parse_id(person2_id, 'person2_id')
        org_id = self.parse_id(org_id, 'org_id')
        max_depth = self.default_max_depth if max_depth is None else max_depth
        self.path_finder.validate_depth(max_depth)

        key = cache_keys.relationship(org_id, person1_id, person2_id, max_depth)
        entry = self.tree_cache.get(key, org_id)
        if entry is None:
            path = self.path_finder.find_path(person1_id, person2_id, org_id, max_depth, cancel_token)
            check_cancelled(cancel_token, "Relationship path search")
            if not path.path_found:
                return RelationshipPathResult(
                    path_found=False,
                    relationship_type=NOT_RELATED.relationship_type,
                    relationship_label=NOT_RELATED.label,
                    gendered_label=NOT_RELATED.gendered_label,
                    relationship_name_key=NOT_RELATED.name_key,
                    error_message=f"No relationship path found within {max_depth} generations",
                )
            entry = self._build_path_entry(path, org_id)
            self.tree_cache.set(key, entry, org_id)

        return self._path_result(entry, person1_id)

    def _build_path_entry(self, path: RelationshipPath, org_id) -> dict:
        canonical = path if str(path.person_ids[0]) <= str(path.person_ids[-1]) else path.reversed()
        summaries = self.graph_store.get_person_summaries(canonical.person_ids, org_id)

        def _sex(person_id):
            summary = summaries.get(person_id)
            return summary.sex if summary else 'Unknown'

        first, last = canonical.person_ids[0], canonical.person_ids[-1]
        return {
            'path': canonical.to_dict(),
            'forward': self.classifier.classify(canonical, org_id, _sex(last)).to_dict(),
            'reverse': self.classifier.classify(canonical.reversed(), org_id, _sex(first)).to_dict(),
            'persons': {
                str(pid): {'display_name': summary.display_name, 'sex': summary.sex}
                for pid, summary in summaries.items()
            },
        }

    @staticmethod
    def _path_result(entry: dict, person1_id) -> RelationshipPathResult:
        path = RelationshipPath.from_dict(entry['path'])
        if path.person_ids[0] == person1_id:
            classification = Classification.from_dict(entry['forward'])
        else:
            path = path.reversed()
            classification = Classification.from_dict(entry['reverse'])

        persons = entry.get('persons', {})
        nodes = []
        for node in path.nodes:
            item = node.to_dict()
            item.update(persons.get(str(node.person_id), {'display_name': None, 'sex': 'Unknown'}))
            nodes.append(item)

        return RelationshipPathResult(
            path_found=True,
            relationship_type=classification.relationship_type,
            relationship_label=classification.label,
            gendered_label=classification.gendered_label,
            relationship_name_key=classification.name_key,
            path_length=path.length,
            path=nodes,
            common_ancestor_id=classification.common_ancestor_id,
            generations_from_each_side=classification.generations_from_each_side,
        )

    # Tree views

    def resolve_generations(self, value, parameter: str = 'generations') -> int:
        """Apply the 1..max bound: below 1 is raised to 1, above max follows the depth policy"""
        if value is None:
            return min(DEFAULT_GENERATIONS, self.max_generations)
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValidationError(f"{parameter} must be an integer, got {value!r}")
        if value < 1:
            return 1
        if value > self.max_generations:
            if self.depth_policy == DEPTH_POLICY_REJECT:
                raise DepthExceededError(value, self.max_generations, parameter)
            self.logger.info(f"Clamping {parameter} {value} to {self.max_generations}")
            return self.max_generations
        return value

    @handle_service_exceptions(logger)
    def get_tree_view(self, root_person_id, org_id, view_mode='pedigree', generations: int | None = None,
                      include_spouses: bool = False, ancestor_generations: int | None = None,
                      descendant_generations: int | None = None,
                      cancel_token: CancellationToken | None = None) -> TreeView:
        root_person_id = self.parse_id(root_person_id, 'root_person_id')
        org_id = self.parse_id(org_id, 'org_id')
        try:
            mode = ViewMode(view_mode)
        except ValueError as e:
            raise ValidationError(f"Unknown view mode {view_mode!r}") from e

        if mode is ViewMode.HOURGLASS:
            ancestors = self.resolve_generations(
                ancestor_generations if ancestor_generations is not None else generations, 'ancestor_generations')
            descendants = self.resolve_generations(
                descendant_generations if descendant_generations is not None else generations,
                'descendant_generations')
            key = cache_keys.hourglass(org_id, root_person_id, ancestors, descendants, include_spouses)
        else:
            depth = self.resolve_generations(generations)
            key_builder = cache_keys.pedigree if mode is ViewMode.PEDIGREE else cache_keys.descendants
            key = key_builder(org_id, root_person_id, depth, include_spouses)

        cached = self.tree_cache.get(key, org_id)
        if cached is not None:
            return tree_view_from_dict(cached, org_id)

        if mode is ViewMode.PEDIGREE:
            view = self.materializer.build_pedigree(root_person_id, org_id, depth, include_spouses, cancel_token)
        elif mode is ViewMode.DESCENDANTS:
            view = self.materializer.build_descendants(root_person_id, org_id, depth, include_spouses, cancel_token)
        else:
            view = self.materializer.build_hourglass(root_person_id, org_id, ancestors, descendants,
                                                     include_spouses, cancel_token)

        check_cancelled(cancel_token, "Tree view")
        self.tree_cache.set(key, view.to_dict(), org_id)
        return view

    # Family group and roots

    @handle_service_exceptions(logger)
    def get_family_group(self, person_id, org_id) -> dict:
        """The person, their parents, each union with its partners and children"""
        person_id = self.parse_id(person_id, 'person_id')
        org_id = self.parse_id(org_id, 'org_id')
        key = cache_keys.family(org_id, person_id)
        cached = self.tree_cache.get(key, org_id)
        if cached is not None:
            return cached

        person = self.graph_store.get_person_summary(person_id, org_id)
        parent_ids = self.graph_store.get_parents_batch([person_id], org_id).get(person_id, [])
        child_ids = self.graph_store.get_children_batch([person_id], org_id).get(person_id, [])
        partners = self.graph_store.get_union_partners_batch([person_id], org_id).get(person_id, [])
        child_parents = self.graph_store.get_parents_batch(child_ids, org_id)

        union_ids = list(dict.fromkeys(p.union_id for p in partners))
        unions = self.graph_store.get_union_summaries(union_ids, org_id)
        summaries = self.graph_store.get_person_summaries(
            list(parent_ids) + list(child_ids) + [p.person_id for p in partners], org_id)

        def _summary(pid):
            return summaries[pid].to_dict() if pid in summaries else {'id': str(pid)}

        placed = set()
        union_entries = []
        for union_id in sort_ids(union_ids):
            union_partner_ids = [p.person_id for p in partners if p.union_id == union_id]
            union_children = [
                cid for cid in child_ids
                if set(child_parents.get(cid, [])) & set(union_partner_ids)
            ]
            placed.update(union_children)
            union = unions.get(union_id)
            union_entries.append({
                'union': union.to_dict() if union else {'id': str(union_id)},
                'partners': [_summary(pid) for pid in union_partner_ids],
                'children': [_summary(cid) for cid in union_children],
            })

        group = {
            'person': person.to_dict(),
            'parents': [_summary(pid) for pid in parent_ids],
            'unions': union_entries,
            'other_children': [_summary(cid) for cid in child_ids if cid not in placed],
        }
        self.tree_cache.set(key, group, org_id)
        return group

    @handle_service_exceptions(logger)
    def get_root_persons(self, org_id, limit: int | None = None) -> list[dict]:
        """
        Persons without parents, largest family first.

        Descendant statistics come from one BFS per root over an adjacency map
        loaded in a single query.
        """
        org_id = self.parse_id(org_id, 'org_id')
        limit = self.root_persons_limit if limit is None else limit
        if limit < 1:
            raise ValidationError("limit must be at least 1")

        root_ids = self.graph_store.find_root_person_ids(org_id)
        children = {}
        for parent_id, child_id in self.graph_store.load_parent_child_edges(org_id):
            children.setdefault(parent_id, []).append(child_id)

        stats = {root_id: self._descendant_stats(root_id, children) for root_id in root_ids}
        summaries = self.graph_store.get_person_summaries(root_ids, org_id)

        def _order(root_id):
            count, depth = stats[root_id]
            summary = summaries.get(root_id)
            birth = summary.birth_date if summary and summary.birth_date else date.max
            return (-count, -depth, birth, str(root_id))

        ordered = sorted((rid for rid in root_ids if rid in summaries), key=_order)[:limit]
        return [
            {
                **summaries[root_id].to_dict(),
                'descendant_count': stats[root_id][0],
                'max_generation_depth': stats[root_id][1],
            }
            for root_id in ordered
        ]

    @staticmethod
    def _descendant_stats(root_id, children: dict) -> tuple[int, int]:
        seen = {root_id}
        queue = deque([(root_id, 0)])
        max_depth = 0
        while queue:
            person_id, depth = queue.popleft()
            max_depth = max(max_depth, depth)
            for child_id in children.get(person_id, []):
                if child_id not in seen:
                    seen.add(child_id)
                    queue.append((child_id, depth + 1))
        return len(seen) - 1, max_depth
