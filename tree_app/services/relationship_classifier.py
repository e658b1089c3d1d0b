"""
Names the relationship a path describes

The label always describes what the last person of the path is to the
first one: a path [Parent, Parent] from A ends at A's grandparent.
"""

import uuid
from dataclasses import dataclass

from tree_app.repositories.graph_store import GraphStore
from tree_app.services.path_finder import EdgeType, RelationshipPath
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

ORDINALS = ['First', 'Second', 'Third', 'Fourth', 'Fifth', 'Sixth', 'Seventh', 'Eighth']
REMOVED = {1: 'once removed', 2: 'twice removed', 3: 'thrice removed'}

# (neutral label, male, female, key prefix)
_NAMES = {
    'parent': ('Parent', 'Father', 'Mother', ('father', 'mother', 'parent')),
    'child': ('Child', 'Son', 'Daughter', ('son', 'daughter', 'child')),
    'grandparent': ('Grandparent', 'Grandfather', 'Grandmother', ('grandfather', 'grandmother', 'grandparent')),
    'grandchild': ('Grandchild', 'Grandson', 'Granddaughter', ('grandson', 'granddaughter', 'grandchild')),
    'sibling': ('Sibling', 'Brother', 'Sister', ('brother', 'sister', 'sibling')),
    'full_sibling': ('Sibling', 'Brother', 'Sister', ('brother', 'sister', 'sibling')),
    'half_sibling': ('Half-sibling', 'Half-brother', 'Half-sister', ('halfBrother', 'halfSister', 'halfSibling')),
    'uncle_aunt': ('Uncle/Aunt', 'Uncle', 'Aunt', ('uncle', 'aunt', 'auntOrUncle')),
    'niece_nephew': ('Niece/Nephew', 'Nephew', 'Niece', ('nephew', 'niece', 'nieceOrNephew')),
    'spouse': ('Spouse', 'Husband', 'Wife', ('husband', 'wife', 'spouse')),
    'parent_in_law': ('Parent-in-law', 'Father-in-law', 'Mother-in-law', ('fatherInLaw', 'motherInLaw', 'parentInLaw')),
    'child_in_law': ('Child-in-law', 'Son-in-law', 'Daughter-in-law', ('sonInLaw', 'daughterInLaw', 'childInLaw')),
    'sibling_in_law': ('Sibling-in-law', 'Brother-in-law', 'Sister-in-law',
                       ('brotherInLaw', 'sisterInLaw', 'siblingInLaw')),
    'step_parent': ('Stepparent', 'Stepfather', 'Stepmother', ('stepfather', 'stepmother', 'stepParent')),
    'step_child': ('Stepchild', 'Stepson', 'Stepdaughter', ('stepson', 'stepdaughter', 'stepChild')),
    'step_sibling': ('Stepsibling', 'Stepbrother', 'Stepsister', ('stepBrother', 'stepSister', 'stepSibling')),
}

# Blood shape (ups, downs) around a single spouse edge
_SPOUSE_FIRST = {(1, 0): 'parent_in_law', (1, 1): 'sibling_in_law', (0, 1): 'step_child'}
_SPOUSE_LAST = {(0, 1): 'child_in_law', (1, 1): 'sibling_in_law', (1, 0): 'step_parent'}


@dataclass(frozen=True)
class Classification:
    relationship_type: str
    label: str
    gendered_label: str
    name_key: str
    common_ancestor_id: uuid.UUID | None = None
    generations_from_each_side: tuple[int, int] | None = None
    spouse_links: int = 0
    great_count: int = 0
    cousin_degree: int | None = None
    removed: int | None = None

    def to_dict(self) -> dict:
        return {
            'relationship_type': self.relationship_type,
            'label': self.label,
            'gendered_label': self.gendered_label,
            'name_key': self.name_key,
            'common_ancestor_id': str(self.common_ancestor_id) if self.common_ancestor_id else None,
            'generations_from_each_side': list(self.generations_from_each_side)
            if self.generations_from_each_side else None,
            'spouse_links': self.spouse_links,
            'great_count': self.great_count,
            'cousin_degree': self.cousin_degree,
            'removed': self.removed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Classification':
        generations = data.get('generations_from_each_side')
        ancestor = data.get('common_ancestor_id')
        return cls(
            relationship_type=data['relationship_type'],
            label=data['label'],
            gendered_label=data['gendered_label'],
            name_key=data['name_key'],
            common_ancestor_id=uuid.UUID(ancestor) if ancestor else None,
            generations_from_each_side=tuple(generations) if generations else None,
            spouse_links=data.get('spouse_links', 0),
            great_count=data.get('great_count', 0),
            cousin_degree=data.get('cousin_degree'),
            removed=data.get('removed'),
        )


NOT_RELATED = Classification('none', 'Not Related', 'Not Related', 'relationship.noRelationFound')


def great_prefix(count: int) -> str:
    if count <= 0:
        return ''
    if count == 1:
        return 'great-'
    if count == 2:
        return 'great-great-'
    return f'{count}x great-'


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def generic_description(ups: int, downs: int, spouse_links: int) -> str:
    return (f"{_plural(ups, 'generation')} up / {_plural(downs, 'generation')} down / "
            f"{_plural(spouse_links, 'spouse link')}")


def cousin_label(degree: int, removed: int) -> str:
    ordinal = ORDINALS[degree - 1] if degree <= len(ORDINALS) else f'{degree}th'
    label = f'{ordinal} cousin'
    if removed:
        label += ' ' + REMOVED.get(removed, f'{removed} times removed')
    return label


def split_blood_shape(edges: list[EdgeType]) -> tuple[int, int] | None:
    """(ups, downs) when edges are Parent* followed by Child*, else None"""
    ups = 0
    while ups < len(edges) and edges[ups] is EdgeType.PARENT:
        ups += 1
    rest = edges[ups:]
    if any(edge is not EdgeType.CHILD for edge in rest):
        return None
    return ups, len(rest)


class RelationshipClassifier:
    """
    Deterministic rule table over a path's edge sequence.

    When a GraphStore is given it is used for two lookups only: the sex of
    the target person (for gendered labels) and the parents of both persons
    (to tell full from half siblings).
    """

    def __init__(self, graph_store: GraphStore | None = None):
        self.graph_store = graph_store

    def classify(self, path: RelationshipPath, org_id: uuid.UUID | None = None,
                 target_sex: str | None = None) -> Classification:
        if not path.path_found:
            return NOT_RELATED

        edges = path.edges
        if not edges:
            return Classification('self', 'Self', 'Self', 'relationship.self',
                                  common_ancestor_id=path.person_ids[0], generations_from_each_side=(0, 0))

        if target_sex is None:
            target_sex = self._lookup_sex(path.person_ids[-1], org_id)

        spouse_links = sum(1 for edge in edges if edge is EdgeType.SPOUSE)
        if spouse_links == 0:
            shape = split_blood_shape(edges)
            if shape is not None:
                return self._classify_blood(path, shape, target_sex, org_id)
        elif spouse_links == 1:
            result = self._classify_single_spouse(edges, target_sex)
            if result is not None:
                return result

        return self._fallback(edges, spouse_links)

    def _lookup_sex(self, person_id, org_id) -> str:
        if self.graph_store is None or org_id is None:
            return 'Unknown'
        summary = self.graph_store.get_person_summaries([person_id], org_id).get(person_id)
        return summary.sex if summary else 'Unknown'

    def _named(self, relationship_type: str, sex: str, great_count: int = 0, **extra) -> Classification:
        neutral, male, female, keys = _NAMES[relationship_type]
        if sex == 'Male':
            gendered, key = male, keys[0]
        elif sex == 'Female':
            gendered, key = female, keys[1]
        else:
            gendered, key = neutral, keys[2]
        prefix = great_prefix(great_count)
        return Classification(
            relationship_type=relationship_type,
            label=_capitalize(prefix + neutral.lower()) if prefix else neutral,
            gendered_label=_capitalize(prefix + gendered.lower()) if prefix else gendered,
            name_key=f'relationship.{key}',
            great_count=great_count,
            **extra,
        )

    def _classify_blood(self, path: RelationshipPath, shape: tuple[int, int], sex: str, org_id) -> Classification:
        ups, downs = shape
        lineage = {
            'common_ancestor_id': path.person_ids[ups],
            'generations_from_each_side': (ups, downs),
        }

        if downs == 0:
            if ups == 1:
                return self._named('parent', sex, **lineage)
            return self._named('grandparent', sex, ups - 2, **lineage)
        if ups == 0:
            if downs == 1:
                return self._named('child', sex, **lineage)
            return self._named('grandchild', sex, downs - 2, **lineage)
        if ups == 1 and downs == 1:
            return self._named(self._sibling_kind(path, org_id), sex, **lineage)
        if downs == 1:
            return self._named('uncle_aunt', sex, ups - 2, **lineage)
        if ups == 1:
            return self._named('niece_nephew', sex, downs - 2, **lineage)

        degree = min(ups, downs) - 1
        removed = abs(ups - downs)
        label = cousin_label(degree, removed)
        return Classification(
            relationship_type='cousin',
            label=label,
            gendered_label=label,
            name_key='relationship.cousin',
            cousin_degree=degree,
            removed=removed,
            **lineage,
        )

    def _sibling_kind(self, path: RelationshipPath, org_id) -> str:
        if self.graph_store is None or org_id is None:
            return 'sibling'
        first, second = path.person_ids[0], path.person_ids[-1]
        parents = self.graph_store.get_parents_batch([first, second], org_id)
        first_parents = set(parents.get(first, []))
        second_parents = set(parents.get(second, []))
        shared = first_parents & second_parents
        if len(shared) >= 2:
            return 'full_sibling'
        if len(shared) == 1 and (first_parents - shared or second_parents - shared):
            return 'half_sibling'
        return 'sibling'

    def _classify_single_spouse(self, edges: list[EdgeType], sex: str) -> Classification | None:
        if len(edges) == 1:
            return self._named('spouse', sex, spouse_links=1)

        common = {'spouse_links': 1}
        if edges[0] is EdgeType.SPOUSE:
            shape = split_blood_shape(edges[1:])
            kind = _SPOUSE_FIRST.get(shape)
        elif edges[-1] is EdgeType.SPOUSE:
            shape = split_blood_shape(edges[:-1])
            kind = _SPOUSE_LAST.get(shape)
        else:
            index = edges.index(EdgeType.SPOUSE)
            before = split_blood_shape(edges[:index])
            after = split_blood_shape(edges[index + 1:])
            kind = 'step_sibling' if (before, after) == ((1, 0), (0, 1)) else None

        if kind is None:
            return None
        return self._named(kind, sex, **common)

    def _fallback(self, edges: list[EdgeType], spouse_links: int) -> Classification:
        ups = sum(1 for edge in edges if edge is EdgeType.PARENT)
        downs = sum(1 for edge in edges if edge is EdgeType.CHILD)
        label = generic_description(ups, downs, spouse_links)
        key = 'relationship.relatedByMarriage' if spouse_links else 'relationship.distantRelative'
        logger.debug(f"No named relationship for edge sequence {[e.value for e in edges]}")
        return Classification(
            relationship_type='related_by_marriage' if spouse_links else 'distant_relative',
            label=label,
            gendered_label=label,
            name_key=key,
            spouse_links=spouse_links,
        )
