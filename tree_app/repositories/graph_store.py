"""
Read contract the traversal core needs from the person graph
"""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from tree_app.services.exceptions import NotFoundError


@dataclass(frozen=True)
class PersonSummary:
    """Display data for one person"""
    id: uuid.UUID
    org_id: uuid.UUID
    display_name: str | None
    sex: str
    birth_date: date | None = None
    birth_precision: str = 'unknown'
    death_date: date | None = None
    death_precision: str = 'unknown'
    is_living: bool = True

    def to_dict(self) -> dict:
        return {
            'id': str(self.id),
            'display_name': self.display_name,
            'sex': self.sex,
            'birth_date': self.birth_date.isoformat() if self.birth_date else None,
            'birth_precision': self.birth_precision,
            'death_date': self.death_date.isoformat() if self.death_date else None,
            'death_precision': self.death_precision,
            'is_living': self.is_living,
        }


@dataclass(frozen=True, order=True)
class UnionPartner:
    """A partner reached through a specific union"""
    person_id: uuid.UUID
    union_id: uuid.UUID


@dataclass(frozen=True)
class UnionSummary:
    id: uuid.UUID
    type: str
    start_date: date | None = None
    end_date: date | None = None

    def to_dict(self) -> dict:
        return {
            'id': str(self.id),
            'type': self.type,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
        }


def sort_ids(ids: Iterable[uuid.UUID]) -> list[uuid.UUID]:
    """Deterministic id ordering used by every traversal"""
    return sorted(ids, key=str)


class GraphStore(ABC):
    """
    Tenant scoped, read-only access to parents, children and union partners.

    Implementations provide the batch methods; each returns an entry for
    every requested id (an empty list when the person has no neighbours or
    is not visible in the tenant) with neighbour lists sorted by id. The
    single-person helpers are built on top of them.
    """

    @abstractmethod
    def get_parents_batch(self, person_ids: Iterable[uuid.UUID], org_id: uuid.UUID) -> dict[uuid.UUID, list[uuid.UUID]]:
        """Parents of each person"""

    @abstractmethod
    def get_children_batch(self, person_ids: Iterable[uuid.UUID], org_id: uuid.UUID) -> dict[uuid.UUID, list[uuid.UUID]]:
        """Children of each person"""

    @abstractmethod
    def get_union_partners_batch(self, person_ids: Iterable[uuid.UUID],
                                 org_id: uuid.UUID) -> dict[uuid.UUID, list[UnionPartner]]:
        """Partners across all of each person's unions"""

    @abstractmethod
    def get_person_summaries(self, person_ids: Iterable[uuid.UUID], org_id: uuid.UUID) -> dict[uuid.UUID, PersonSummary]:
        """Summaries for the visible persons among person_ids"""

    @abstractmethod
    def get_union_summaries(self, union_ids: Iterable[uuid.UUID], org_id: uuid.UUID) -> dict[uuid.UUID, UnionSummary]:
        """Type and dates of the visible unions among union_ids"""

    @abstractmethod
    def find_root_person_ids(self, org_id: uuid.UUID) -> list[uuid.UUID]:
        """Persons of the tenant with no visible parent"""

    @abstractmethod
    def load_parent_child_edges(self, org_id: uuid.UUID) -> list[tuple[uuid.UUID, uuid.UUID]]:
        """Every visible (parent_id, child_id) edge of the tenant"""

    def person_exists(self, person_id: uuid.UUID, org_id: uuid.UUID) -> bool:
        return person_id in self.get_person_summaries([person_id], org_id)

    def get_person_summary(self, person_id: uuid.UUID, org_id: uuid.UUID) -> PersonSummary:
        summary = self.get_person_summaries([person_id], org_id).get(person_id)
        if summary is None:
            raise NotFoundError(f"Person {person_id} not found")
        return summary

    def get_parents(self, person_id: uuid.UUID, org_id: uuid.UUID) -> set[uuid.UUID]:
        return set(self.get_parents_batch([person_id], org_id).get(person_id, []))

    def get_children(self, person_id: uuid.UUID, org_id: uuid.UUID) -> set[uuid.UUID]:
        return set(self.get_children_batch([person_id], org_id).get(person_id, []))

    def get_union_partners(self, person_id: uuid.UUID, org_id: uuid.UUID) -> set[uuid.UUID]:
        partners = self.get_union_partners_batch([person_id], org_id).get(person_id, [])
        return {partner.person_id for partner in partners}
