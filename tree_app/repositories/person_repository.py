"""
Repository for person records
"""

import uuid

from sqlalchemy import select

from tree_app.database.models import Org, Person
from tree_app.repositories.base_repository import ModelRepository
from tree_app.services.exceptions import NotFoundError


class PersonRepository(ModelRepository[Person]):
    """Create, update and tenant-scoped lookup of persons"""

    def __init__(self, db_session=None):
        super().__init__(Person, db_session)

    def get_in_org(self, person_id: uuid.UUID, org_id: uuid.UUID) -> Person:
        """Get a visible person of the tenant or raise NotFoundError"""
        def _query():
            stmt = select(Person).where(
                Person.id == person_id,
                Person.org_id == org_id,
                Person.is_deleted.is_(False),
            )
            return self.db_session.execute(stmt).scalar_one_or_none()

        person = self.safe_query(_query, 'get person in org')
        if person is None:
            raise NotFoundError(f"Person {person_id} not found")
        return person

    def ensure_org(self, org_id: uuid.UUID, name: str | None = None) -> Org:
        """Return the tenant row, creating it on first use"""
        org = self.db_session.get(Org, org_id)
        if org is not None:
            return org

        def _create():
            created = Org(id=org_id, name=name or str(org_id))
            self.db_session.add(created)
            return created

        return self.safe_operation(_create, 'create org')

    def soft_delete(self, person: Person) -> Person:
        return self.update(person, is_deleted=True)
