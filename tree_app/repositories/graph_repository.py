"""
SQLAlchemy implementation of the GraphStore contract
"""

import uuid
from collections.abc import Iterable

from sqlalchemy import and_, exists, select
from sqlalchemy.orm import aliased

from tree_app.database.models import ParentChild, Person, Union, UnionMember
from tree_app.repositories.base_repository import BaseRepository
from tree_app.repositories.graph_store import (
    GraphStore,
    PersonSummary,
    UnionPartner,
    UnionSummary,
    sort_ids,
)


def _enum_value(value):
    return getattr(value, 'value', value)


class GraphRepository(BaseRepository, GraphStore):
    """
    Reads adjacency from the parent_child / unions / union_members tables.

    Every query joins the person rows on both ends of an edge and filters by
    tenant and soft-delete flags, so a neighbour in another tenant (or a
    deleted one) is simply invisible.
    """

    def _visible_person(self, alias, org_id):
        return and_(alias.org_id == org_id, alias.is_deleted.is_(False))

    def _edge_batch(self, person_ids, org_id, from_column: str, to_column: str, operation_name: str):
        ids = list(dict.fromkeys(person_ids))
        result = {person_id: [] for person_id in ids}
        if not ids:
            return result

        def _query():
            source = aliased(Person)
            target = aliased(Person)
            from_attr = getattr(ParentChild, from_column)
            to_attr = getattr(ParentChild, to_column)
            stmt = (
                select(from_attr, to_attr)
                .join(source, source.id == from_attr)
                .join(target, target.id == to_attr)
                .where(
                    from_attr.in_(ids),
                    ParentChild.is_deleted.is_(False),
                    self._visible_person(source, org_id),
                    self._visible_person(target, org_id),
                )
            )
            return self.db_session.execute(stmt).all()

        for source_id, target_id in self.safe_query(_query, operation_name):
            result[source_id].append(target_id)
        return {person_id: sort_ids(set(targets)) for person_id, targets in result.items()}

    def get_parents_batch(self, person_ids: Iterable[uuid.UUID], org_id: uuid.UUID) -> dict[uuid.UUID, list[uuid.UUID]]:
        return self._edge_batch(person_ids, org_id, 'child_id', 'parent_id', 'get parents batch')

    def get_children_batch(self, person_ids: Iterable[uuid.UUID], org_id: uuid.UUID) -> dict[uuid.UUID, list[uuid.UUID]]:
        return self._edge_batch(person_ids, org_id, 'parent_id', 'child_id', 'get children batch')

    def get_union_partners_batch(self, person_ids: Iterable[uuid.UUID],
                                 org_id: uuid.UUID) -> dict[uuid.UUID, list[UnionPartner]]:
        ids = list(dict.fromkeys(person_ids))
        result = {person_id: set() for person_id in ids}
        if not ids:
            return {person_id: [] for person_id in ids}

        def _query():
            member = aliased(UnionMember)
            partner = aliased(UnionMember)
            member_person = aliased(Person)
            partner_person = aliased(Person)
            stmt = (
                select(member.person_id, partner.person_id, Union.id)
                .join(Union, Union.id == member.union_id)
                .join(partner, and_(partner.union_id == member.union_id,
                                    partner.person_id != member.person_id))
                .join(member_person, member_person.id == member.person_id)
                .join(partner_person, partner_person.id == partner.person_id)
                .where(
                    member.person_id.in_(ids),
                    member.is_deleted.is_(False),
                    partner.is_deleted.is_(False),
                    Union.is_deleted.is_(False),
                    Union.org_id == org_id,
                    self._visible_person(member_person, org_id),
                    self._visible_person(partner_person, org_id),
                )
            )
            return self.db_session.execute(stmt).all()

        for person_id, partner_id, union_id in self.safe_query(_query, 'get union partners batch'):
            result[person_id].add(UnionPartner(partner_id, union_id))
        return {
            person_id: sorted(partners, key=lambda p: (str(p.person_id), str(p.union_id)))
            for person_id, partners in result.items()
        }

    def get_person_summaries(self, person_ids: Iterable[uuid.UUID], org_id: uuid.UUID) -> dict[uuid.UUID, PersonSummary]:
        ids = list(dict.fromkeys(person_ids))
        if not ids:
            return {}

        def _query():
            stmt = select(Person).where(Person.id.in_(ids), self._visible_person(Person, org_id))
            return self.db_session.execute(stmt).scalars().all()

        return {
            person.id: PersonSummary(
                id=person.id,
                org_id=person.org_id,
                display_name=person.primary_name,
                sex=_enum_value(person.sex),
                birth_date=person.birth_date,
                birth_precision=_enum_value(person.birth_precision),
                death_date=person.death_date,
                death_precision=_enum_value(person.death_precision),
                is_living=person.is_living,
            )
            for person in self.safe_query(_query, 'get person summaries')
        }

    def get_union_summaries(self, union_ids: Iterable[uuid.UUID], org_id: uuid.UUID) -> dict[uuid.UUID, UnionSummary]:
        ids = list(dict.fromkeys(union_ids))
        if not ids:
            return {}

        def _query():
            stmt = select(Union).where(Union.id.in_(ids), Union.org_id == org_id, Union.is_deleted.is_(False))
            return self.db_session.execute(stmt).scalars().all()

        return {
            union.id: UnionSummary(union.id, _enum_value(union.type), union.start_date, union.end_date)
            for union in self.safe_query(_query, 'get union summaries')
        }

    def find_root_person_ids(self, org_id: uuid.UUID) -> list[uuid.UUID]:
        def _query():
            parent = aliased(Person)
            has_parent = (
                select(ParentChild.id)
                .join(parent, parent.id == ParentChild.parent_id)
                .where(
                    ParentChild.child_id == Person.id,
                    ParentChild.is_deleted.is_(False),
                    self._visible_person(parent, org_id),
                )
            )
            stmt = select(Person.id).where(self._visible_person(Person, org_id), ~exists(has_parent))
            return self.db_session.execute(stmt).scalars().all()

        return sort_ids(self.safe_query(_query, 'find root persons'))

    def load_parent_child_edges(self, org_id: uuid.UUID) -> list[tuple[uuid.UUID, uuid.UUID]]:
        def _query():
            parent = aliased(Person)
            child = aliased(Person)
            stmt = (
                select(ParentChild.parent_id, ParentChild.child_id)
                .join(parent, parent.id == ParentChild.parent_id)
                .join(child, child.id == ParentChild.child_id)
                .where(
                    ParentChild.is_deleted.is_(False),
                    self._visible_person(parent, org_id),
                    self._visible_person(child, org_id),
                )
            )
            return self.db_session.execute(stmt).all()

        return [(parent_id, child_id) for parent_id, child_id in self.safe_query(_query, 'load parent-child edges')]
