"""
Repository for the write side of the graph: parent-child edges and union membership
"""

import uuid
from datetime import date

from sqlalchemy import select

from tree_app.database.models import ParentChild, ParentChildType, Person, Union, UnionMember, UnionType
from tree_app.repositories.base_repository import BaseRepository
from tree_app.services.exceptions import ConflictError, NotFoundError, ValidationError


class RelationshipRepository(BaseRepository):
    """Adds and removes edges; deletions are soft so history survives"""

    def _require_persons(self, person_ids: list[uuid.UUID], org_id: uuid.UUID):
        def _query():
            stmt = select(Person.id).where(
                Person.id.in_(person_ids),
                Person.org_id == org_id,
                Person.is_deleted.is_(False),
            )
            return set(self.db_session.execute(stmt).scalars().all())

        found = self.safe_query(_query, 'check persons in org')
        missing = [str(person_id) for person_id in person_ids if person_id not in found]
        if missing:
            raise NotFoundError(f"Person(s) not found: {', '.join(missing)}")

    def _get_union(self, union_id: uuid.UUID, org_id: uuid.UUID) -> Union:
        def _query():
            stmt = select(Union).where(Union.id == union_id, Union.org_id == org_id, Union.is_deleted.is_(False))
            return self.db_session.execute(stmt).scalar_one_or_none()

        union = self.safe_query(_query, 'get union')
        if union is None:
            raise NotFoundError(f"Union {union_id} not found")
        return union

    def _find_edge(self, parent_id: uuid.UUID, child_id: uuid.UUID) -> ParentChild | None:
        stmt = select(ParentChild).where(ParentChild.parent_id == parent_id, ParentChild.child_id == child_id)
        return self.db_session.execute(stmt).scalar_one_or_none()

    def add_parent_child(self, parent_id: uuid.UUID, child_id: uuid.UUID, org_id: uuid.UUID,
                         relationship_type: ParentChildType = ParentChildType.BIOLOGICAL) -> ParentChild:
        """Create a parent -> child edge, reviving a soft-deleted one"""
        if parent_id == child_id:
            raise ValidationError("A person cannot be their own parent")
        self._require_persons([parent_id, child_id], org_id)

        existing = self.safe_query(lambda: self._find_edge(parent_id, child_id), 'find parent-child edge')
        if existing is not None and not existing.is_deleted:
            raise ConflictError(f"{parent_id} is already a parent of {child_id}")

        def _add():
            if existing is not None:
                existing.is_deleted = False
                existing.relationship_type = relationship_type
                return existing
            edge = ParentChild(parent_id=parent_id, child_id=child_id, relationship_type=relationship_type)
            self.db_session.add(edge)
            return edge

        return self.safe_operation(_add, 'add parent-child edge')

    def remove_parent_child(self, parent_id: uuid.UUID, child_id: uuid.UUID, org_id: uuid.UUID) -> ParentChild:
        self._require_persons([parent_id, child_id], org_id)
        edge = self.safe_query(lambda: self._find_edge(parent_id, child_id), 'find parent-child edge')
        if edge is None or edge.is_deleted:
            raise NotFoundError(f"No parent-child edge from {parent_id} to {child_id}")

        def _remove():
            edge.is_deleted = True
            return edge

        return self.safe_operation(_remove, 'remove parent-child edge')

    def create_union(self, org_id: uuid.UUID, member_ids: list[uuid.UUID],
                     union_type: UnionType = UnionType.MARRIAGE,
                     start_date: date | None = None, end_date: date | None = None) -> Union:
        """Create a union with its initial members"""
        unique_members = list(dict.fromkeys(member_ids))
        if len(unique_members) < 2:
            raise ValidationError("A union needs at least two distinct members")
        self._require_persons(unique_members, org_id)

        def _create():
            union = Union(org_id=org_id, type=union_type, start_date=start_date, end_date=end_date)
            for person_id in unique_members:
                union.members.append(UnionMember(person_id=person_id))
            self.db_session.add(union)
            return union

        return self.safe_operation(_create, 'create union')

    def get_member_ids(self, union_id: uuid.UUID, org_id: uuid.UUID) -> list[uuid.UUID]:
        """Active member ids of a union in the tenant"""
        self._get_union(union_id, org_id)

        def _query():
            stmt = select(UnionMember.person_id).where(
                UnionMember.union_id == union_id,
                UnionMember.is_deleted.is_(False),
            )
            return self.db_session.execute(stmt).scalars().all()

        return sorted(self.safe_query(_query, 'get union members'), key=str)

    def add_union_member(self, union_id: uuid.UUID, person_id: uuid.UUID, org_id: uuid.UUID,
                         role: str = 'Spouse') -> UnionMember:
        union = self._get_union(union_id, org_id)
        self._require_persons([person_id], org_id)

        existing = next((m for m in union.members if m.person_id == person_id), None)
        if existing is not None and not existing.is_deleted:
            raise ConflictError(f"Person {person_id} is already a member of union {union_id}")

        def _add():
            if existing is not None:
                existing.is_deleted = False
                existing.role = role
                return existing
            member = UnionMember(union_id=union_id, person_id=person_id, role=role)
            self.db_session.add(member)
            return member

        return self.safe_operation(_add, 'add union member')

    def remove_union_member(self, union_id: uuid.UUID, person_id: uuid.UUID, org_id: uuid.UUID) -> UnionMember:
        union = self._get_union(union_id, org_id)
        member = next((m for m in union.members if m.person_id == person_id and not m.is_deleted), None)
        if member is None:
            raise NotFoundError(f"Person {person_id} is not a member of union {union_id}")

        def _remove():
            member.is_deleted = True
            return member

        return self.safe_operation(_remove, 'remove union member')
