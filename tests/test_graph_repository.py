"""
Tests for the SQLAlchemy GraphStore implementation
"""

import uuid
from datetime import date

import pytest

from tree_app.database.models import Org, ParentChild, Person, Sex, Union, UnionMember
from tree_app.repositories.graph_repository import GraphRepository
from tree_app.services.exceptions import NotFoundError


def add_person(db, org_id, name, sex=Sex.UNKNOWN, **kwargs):
    person = Person(org_id=org_id, primary_name=name, sex=sex, **kwargs)
    db.session.add(person)
    db.session.flush()
    return person.id


def add_edge(db, parent_id, child_id, **kwargs):
    db.session.add(ParentChild(parent_id=parent_id, child_id=child_id, **kwargs))
    db.session.flush()


def add_union(db, org_id, *person_ids, **kwargs):
    union = Union(org_id=org_id, **kwargs)
    for person_id in person_ids:
        union.members.append(UnionMember(person_id=person_id))
    db.session.add(union)
    db.session.flush()
    return union.id


@pytest.fixture
def org_ids(db):
    orgs = [Org(id=uuid.uuid4(), name='Main'), Org(id=uuid.uuid4(), name='Other')]
    db.session.add_all(orgs)
    db.session.commit()
    return orgs[0].id, orgs[1].id


@pytest.fixture
def stored_family(db, org_ids):
    """Grandpa -> Dad, Uncle; Dad + Mom -> Me; Dad and Mom married"""
    org_id = org_ids[0]
    people = {
        'grandpa': add_person(db, org_id, 'Grandpa', Sex.MALE, birth_date=date(1900, 5, 1)),
        'dad': add_person(db, org_id, 'Dad', Sex.MALE),
        'uncle': add_person(db, org_id, 'Uncle', Sex.MALE),
        'mom': add_person(db, org_id, 'Mom', Sex.FEMALE),
        'me': add_person(db, org_id, 'Me'),
    }
    add_edge(db, people['grandpa'], people['dad'])
    add_edge(db, people['grandpa'], people['uncle'])
    add_edge(db, people['dad'], people['me'])
    add_edge(db, people['mom'], people['me'])
    people['union'] = add_union(db, org_id, people['dad'], people['mom'])
    db.session.commit()
    return people


@pytest.fixture
def repository(db):
    return GraphRepository()


class TestGraphRepositoryAdjacency:
    """Batched neighbour lookups"""

    def test_parents_batch(self, repository, stored_family, org_ids):
        result = repository.get_parents_batch([stored_family['me'], stored_family['grandpa']], org_ids[0])

        assert set(result[stored_family['me']]) == {stored_family['dad'], stored_family['mom']}
        assert result[stored_family['me']] == sorted(result[stored_family['me']], key=str)
        assert result[stored_family['grandpa']] == []

    def test_children_batch(self, repository, stored_family, org_ids):
        result = repository.get_children_batch([stored_family['grandpa']], org_ids[0])

        assert set(result[stored_family['grandpa']]) == {stored_family['dad'], stored_family['uncle']}

    def test_unknown_ids_get_empty_entries(self, repository, stored_family, org_ids):
        missing = uuid.uuid4()

        assert repository.get_parents_batch([missing], org_ids[0]) == {missing: []}
        assert repository.get_children_batch([], org_ids[0]) == {}

    def test_union_partners_batch(self, repository, stored_family, org_ids):
        result = repository.get_union_partners_batch([stored_family['dad'], stored_family['uncle']], org_ids[0])

        assert [(p.person_id, p.union_id) for p in result[stored_family['dad']]] == [
            (stored_family['mom'], stored_family['union']),
        ]
        assert result[stored_family['uncle']] == []

    def test_soft_deleted_edges_and_persons_invisible(self, db, repository, stored_family, org_ids):
        edge = db.session.query(ParentChild).filter_by(
            parent_id=stored_family['grandpa'], child_id=stored_family['uncle']).one()
        edge.is_deleted = True
        db.session.get(Person, stored_family['mom']).is_deleted = True
        db.session.commit()

        assert repository.get_children_batch([stored_family['grandpa']], org_ids[0]) == {
            stored_family['grandpa']: [stored_family['dad']],
        }
        assert repository.get_parents_batch([stored_family['me']], org_ids[0]) == {
            stored_family['me']: [stored_family['dad']],
        }
        assert repository.get_union_partners_batch([stored_family['dad']], org_ids[0]) == {
            stored_family['dad']: [],
        }

    def test_other_tenant_sees_nothing(self, repository, stored_family, org_ids):
        other_org = org_ids[1]

        assert repository.get_parents_batch([stored_family['me']], other_org) == {stored_family['me']: []}
        assert repository.get_person_summaries([stored_family['me']], other_org) == {}
        assert repository.get_union_partners_batch([stored_family['dad']], other_org) == {stored_family['dad']: []}

    def test_cross_tenant_edge_ignored(self, db, repository, stored_family, org_ids):
        """An edge to a person of another tenant is not followed"""
        outsider = add_person(db, org_ids[1], 'Outsider')
        add_edge(db, stored_family['me'], outsider)
        db.session.commit()

        assert repository.get_children_batch([stored_family['me']], org_ids[0]) == {stored_family['me']: []}


class TestGraphRepositorySummaries:
    """Person and union display data"""

    def test_person_summaries(self, repository, stored_family, org_ids):
        summaries = repository.get_person_summaries([stored_family['grandpa'], stored_family['me']], org_ids[0])
        grandpa = summaries[stored_family['grandpa']]

        assert grandpa.display_name == 'Grandpa'
        assert grandpa.sex == 'Male'
        assert grandpa.birth_date == date(1900, 5, 1)
        assert grandpa.birth_precision == 'unknown'
        assert grandpa.org_id == org_ids[0]
        assert summaries[stored_family['me']].sex == 'Unknown'

    def test_get_person_summary_missing(self, repository, stored_family, org_ids):
        with pytest.raises(NotFoundError):
            repository.get_person_summary(stored_family['me'], org_ids[1])

    def test_single_person_helpers(self, repository, stored_family, org_ids):
        assert repository.person_exists(stored_family['me'], org_ids[0])
        assert repository.get_parents(stored_family['me'], org_ids[0]) == {stored_family['dad'], stored_family['mom']}
        assert repository.get_children(stored_family['dad'], org_ids[0]) == {stored_family['me']}
        assert repository.get_union_partners(stored_family['mom'], org_ids[0]) == {stored_family['dad']}

    def test_union_summaries(self, repository, stored_family, org_ids):
        summaries = repository.get_union_summaries([stored_family['union']], org_ids[0])

        assert summaries[stored_family['union']].type == 'marriage'
        assert repository.get_union_summaries([stored_family['union']], org_ids[1]) == {}


class TestGraphRepositoryRoots:
    """Whole-tenant queries"""

    def test_root_person_ids(self, repository, stored_family, org_ids):
        roots = repository.find_root_person_ids(org_ids[0])

        assert set(roots) == {stored_family['grandpa'], stored_family['mom']}

    def test_deleted_parent_makes_child_a_root(self, db, repository, stored_family, org_ids):
        db.session.get(Person, stored_family['grandpa']).is_deleted = True
        db.session.commit()

        roots = repository.find_root_person_ids(org_ids[0])

        assert set(roots) == {stored_family['dad'], stored_family['uncle'], stored_family['mom']}

    def test_load_parent_child_edges(self, repository, stored_family, org_ids):
        edges = set(repository.load_parent_child_edges(org_ids[0]))

        assert edges == {
            (stored_family['grandpa'], stored_family['dad']),
            (stored_family['grandpa'], stored_family['uncle']),
            (stored_family['dad'], stored_family['me']),
            (stored_family['mom'], stored_family['me']),
        }
        assert repository.load_parent_child_edges(org_ids[1]) == []
