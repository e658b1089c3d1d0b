"""
Write-side operations on the person graph, each followed by cache invalidation
"""

from datetime import date

from tree_app.database import db
from tree_app.database.models import DatePrecision, ParentChildType, Sex, UnionType
from tree_app.repositories.graph_store import GraphStore
from tree_app.repositories.person_repository import PersonRepository
from tree_app.repositories.relationship_repository import RelationshipRepository
from tree_app.services.base_service import BaseService
from tree_app.services.exceptions import ValidationError, handle_service_exceptions
from tree_app.services.tree_cache import TreeCache
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

PERSON_FIELDS = {
    'primary_name', 'sex', 'birth_date', 'birth_precision', 'death_date', 'death_precision', 'is_living',
}


def _parse_enum(enum_class, value, field_name):
    if value is None or isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except ValueError as e:
        allowed = ', '.join(member.value for member in enum_class)
        raise ValidationError(f"Invalid {field_name} {value!r}; expected one of: {allowed}") from e


def _parse_date(value, field_name):
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {field_name} {value!r}; expected YYYY-MM-DD") from e


class GraphMutationService(BaseService):
    """
    Persons, parent-child edges and union membership.

    The transaction is committed before the cache is touched, so a failed
    write never invalidates anything and a cached view can never be rebuilt
    from uncommitted data.
    """

    def __init__(self, graph_store: GraphStore, tree_cache: TreeCache, db_session=None):
        super().__init__(db_session or db.session)
        self.graph_store = graph_store
        self.tree_cache = tree_cache
        self.person_repository = PersonRepository(db_session)
        self.relationship_repository = RelationshipRepository(db_session)

    def _person_values(self, data: dict) -> dict:
        unknown = set(data) - PERSON_FIELDS
        if unknown:
            raise ValidationError(f"Unknown person field(s): {', '.join(sorted(unknown))}")
        values = dict(data)
        if 'sex' in values:
            values['sex'] = _parse_enum(Sex, values['sex'], 'sex')
        for field_name in ('birth_precision', 'death_precision'):
            if field_name in values:
                values[field_name] = _parse_enum(DatePrecision, values[field_name], field_name)
        for field_name in ('birth_date', 'death_date'):
            if field_name in values:
                values[field_name] = _parse_date(values[field_name], field_name)
        return values

    @handle_service_exceptions(logger)
    def create_person(self, org_id, **data):
        org_id = self.parse_id(org_id, 'org_id')
        values = self._person_values(data)
        self.person_repository.ensure_org(org_id)
        person = self.person_repository.create(org_id=org_id, **values)
        self.db_session.commit()
        self.logger.info(f"Created person {person.id} in org {org_id}")
        return person

    @handle_service_exceptions(logger)
    def update_person(self, person_id, org_id, **data):
        person_id = self.parse_id(person_id, 'person_id')
        org_id = self.parse_id(org_id, 'org_id')
        values = self._person_values(data)
        person = self.person_repository.get_in_org(person_id, org_id)
        self.person_repository.update(person, **values)
        self.db_session.commit()
        self.tree_cache.on_person_mutated(person_id, org_id, self.graph_store)
        return person

    @handle_service_exceptions(logger)
    def delete_person(self, person_id, org_id):
        """Soft-delete a person; views rooted at their relatives are purged too"""
        person_id = self.parse_id(person_id, 'person_id')
        org_id = self.parse_id(org_id, 'org_id')
        person = self.person_repository.get_in_org(person_id, org_id)
        neighbours = self.tree_cache.neighbours(self.graph_store, [person_id], org_id)
        self.person_repository.soft_delete(person)
        self.db_session.commit()
        self.tree_cache.on_person_mutated(person_id, org_id)
        for neighbour_id in sorted(neighbours, key=str):
            self.tree_cache.on_edge_mutated(person_id, neighbour_id, org_id, self.graph_store)
        self.logger.info(f"Deleted person {person_id} from org {org_id}")

    @handle_service_exceptions(logger)
    def add_parent_child(self, parent_id, child_id, org_id, relationship_type='biological'):
        parent_id = self.parse_id(parent_id, 'parent_id')
        child_id = self.parse_id(child_id, 'child_id')
        org_id = self.parse_id(org_id, 'org_id')
        relationship_type = _parse_enum(ParentChildType, relationship_type, 'relationship_type')
        edge = self.relationship_repository.add_parent_child(parent_id, child_id, org_id, relationship_type)
        self.db_session.commit()
        self.tree_cache.on_edge_mutated(parent_id, child_id, org_id, self.graph_store)
        self.logger.info(f"Added parent-child edge {parent_id} -> {child_id} in org {org_id}")
        return edge

    @handle_service_exceptions(logger)
    def remove_parent_child(self, parent_id, child_id, org_id):
        parent_id = self.parse_id(parent_id, 'parent_id')
        child_id = self.parse_id(child_id, 'child_id')
        org_id = self.parse_id(org_id, 'org_id')
        self.relationship_repository.remove_parent_child(parent_id, child_id, org_id)
        self.db_session.commit()
        self.tree_cache.on_edge_mutated(parent_id, child_id, org_id, self.graph_store)
        self.logger.info(f"Removed parent-child edge {parent_id} -> {child_id} in org {org_id}")

    @handle_service_exceptions(logger)
    def create_union(self, org_id, member_ids: list, union_type='marriage', start_date=None, end_date=None):
        org_id = self.parse_id(org_id, 'org_id')
        members = [self.parse_id(pid, 'member_id') for pid in member_ids]
        union = self.relationship_repository.create_union(
            org_id, members,
            union_type=_parse_enum(UnionType, union_type, 'union_type'),
            start_date=_parse_date(start_date, 'start_date'),
            end_date=_parse_date(end_date, 'end_date'),
        )
        self.db_session.commit()
        self._invalidate_members(members, org_id)
        self.logger.info(f"Created union {union.id} with {len(members)} members in org {org_id}")
        return union

    @handle_service_exceptions(logger)
    def add_union_member(self, union_id, person_id, org_id, role: str = 'Spouse'):
        union_id = self.parse_id(union_id, 'union_id')
        person_id = self.parse_id(person_id, 'person_id')
        org_id = self.parse_id(org_id, 'org_id')
        member = self.relationship_repository.add_union_member(union_id, person_id, org_id, role)
        self.db_session.commit()
        self._invalidate_members(self.relationship_repository.get_member_ids(union_id, org_id), org_id)
        return member

    @handle_service_exceptions(logger)
    def remove_union_member(self, union_id, person_id, org_id):
        union_id = self.parse_id(union_id, 'union_id')
        person_id = self.parse_id(person_id, 'person_id')
        org_id = self.parse_id(org_id, 'org_id')
        remaining = self.relationship_repository.get_member_ids(union_id, org_id)
        self.relationship_repository.remove_union_member(union_id, person_id, org_id)
        self.db_session.commit()
        self._invalidate_members(remaining, org_id)

    def _invalidate_members(self, member_ids, org_id):
        """Every pair of members shares a spouse edge"""
        members = sorted(set(member_ids), key=str)
        for index, first in enumerate(members):
            for second in members[index + 1:]:
                self.tree_cache.on_edge_mutated(first, second, org_id, self.graph_store)
