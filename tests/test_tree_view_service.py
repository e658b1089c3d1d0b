"""
Tests for the cache-first tree view service
"""

import json
import uuid
from datetime import date
from unittest.mock import Mock

import pytest

from tree_app.services import cache_keys
from tree_app.services.cache_backend import CacheBackend, ResilientCache
from tree_app.services.cancellation import CancellationToken
from tree_app.services.exceptions import (
    CacheUnavailableError,
    DepthExceededError,
    NotFoundError,
    OperationCancelledError,
    TenantMismatchError,
    ValidationError,
)
from tree_app.services.tree_cache import TreeCache
from tree_app.services.tree_view_service import TreeViewService


@pytest.fixture
def service(graph, tree_cache):
    return TreeViewService(graph, tree_cache)


class TestFindRelationshipPath:
    """Named relationship paths"""

    def test_uncle_scenario(self, service, family, org_id):
        result = service.find_relationship_path(family['me'], family['uncle'], org_id)

        assert result.path_found
        assert result.path_length == 3
        assert result.relationship_type == 'uncle_aunt'
        assert result.relationship_label == 'Uncle/Aunt'
        assert result.gendered_label == 'Uncle'
        assert result.common_ancestor_id == family['grandpa']
        assert result.generations_from_each_side == (2, 1)
        assert [node['display_name'] for node in result.path] == ['Me', 'Dad', 'Grandpa', 'Uncle']
        assert [node['edge_to_next'] for node in result.path] == ['parent', 'parent', 'child', None]

    def test_reverse_direction_gets_inverse_name(self, service, family, org_id):
        """The same cached pair answers both directions"""
        service.find_relationship_path(family['me'], family['uncle'], org_id)
        result = service.find_relationship_path(family['uncle'], family['me'], org_id)

        assert result.relationship_type == 'niece_nephew'
        assert result.gendered_label == 'Niece'
        assert [node['display_name'] for node in result.path] == ['Uncle', 'Grandpa', 'Dad', 'Me']

    def test_second_call_served_from_cache(self, service, family, graph, org_id):
        """An identical request makes no GraphStore calls and returns the same result"""
        first = service.find_relationship_path(family['me'], family['uncle'], org_id)
        graph.reset_calls()

        second = service.find_relationship_path(str(family['me']), str(family['uncle']), str(org_id))

        assert graph.total_calls == 0
        assert second.to_dict() == first.to_dict()

    def test_not_found_result_not_cached(self, service, family, graph, memory_backend, org_id):
        stranger = graph.add_person('Stranger', org_id)

        result = service.find_relationship_path(family['me'], stranger, org_id)

        assert not result.path_found
        assert result.relationship_type == 'none'
        assert result.relationship_label == 'Not Related'
        assert result.error_message
        assert memory_backend.keys() == []

    def test_depth_validated_before_cache(self, family, graph, org_id):
        backend = Mock(spec=CacheBackend)
        service = TreeViewService(graph, TreeCache(ResilientCache(backend)))

        with pytest.raises(DepthExceededError):
            service.find_relationship_path(family['me'], family['uncle'], org_id, max_depth=50)
        backend.get.assert_not_called()
        assert graph.total_calls == 0

    def test_default_depth_used(self, service, family, memory_backend, org_id):
        service.find_relationship_path(family['me'], family['uncle'], org_id)

        assert memory_backend.keys() == [cache_keys.relationship(org_id, family['me'], family['uncle'], 15)]

    def test_invalid_id(self, service, org_id):
        with pytest.raises(ValidationError):
            service.find_relationship_path('not-a-uuid', uuid.uuid4(), org_id)

    def test_missing_person(self, service, family, org_id):
        with pytest.raises(NotFoundError):
            service.find_relationship_path(family['me'], uuid.uuid4(), org_id)

    def test_cache_outage_still_answers(self, family, graph, org_id):
        backend = Mock(spec=CacheBackend)
        backend.get.side_effect = CacheUnavailableError('down')
        backend.set.side_effect = CacheUnavailableError('down')
        service = TreeViewService(graph, TreeCache(ResilientCache(backend)))

        result = service.find_relationship_path(family['me'], family['uncle'], org_id)

        assert result.relationship_type == 'uncle_aunt'

    def test_foreign_cache_entry_is_an_error(self, service, family, memory_backend, org_id):
        key = cache_keys.relationship(org_id, family['me'], family['uncle'], 15)
        memory_backend.set(key, json.dumps({'org_id': uuid.uuid4().hex, 'value': {}}), 60)

        with pytest.raises(TenantMismatchError):
            service.find_relationship_path(family['me'], family['uncle'], org_id)

    def test_cancelled_search_not_cached(self, service, family, memory_backend, org_id):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            service.find_relationship_path(family['me'], family['uncle'], org_id, cancel_token=token)
        assert memory_backend.keys() == []


class TestGetTreeView:
    """Cached tree views and generation bounds"""

    def test_descendants_view(self, service, family, org_id):
        view = service.get_tree_view(family['grandpa'], org_id, view_mode='descendants', generations=2)

        assert view.total_persons == 4

    def test_second_call_served_from_cache(self, service, family, graph, org_id):
        first = service.get_tree_view(family['me'], org_id, view_mode='pedigree', generations=3,
                                      include_spouses=True)
        graph.reset_calls()

        second = service.get_tree_view(family['me'], org_id, view_mode='pedigree', generations=3,
                                       include_spouses=True)

        assert graph.total_calls == 0
        assert second.to_dict() == first.to_dict()

    def test_mutation_invalidates_view(self, service, family, graph, tree_cache, org_id):
        before = service.get_tree_view(family['me'], org_id, view_mode='descendants', generations=2)
        kid = graph.add_person('Kid', org_id)
        graph.add_parent(family['me'], kid)
        tree_cache.on_edge_mutated(family['me'], kid, org_id, graph)

        after = service.get_tree_view(family['me'], org_id, view_mode='descendants', generations=2)

        assert before.total_persons == 1
        assert after.total_persons == 2

    def test_default_generations(self, service, family, memory_backend, org_id):
        service.get_tree_view(family['me'], org_id)

        assert memory_backend.keys() == [cache_keys.pedigree(org_id, family['me'], 4, False)]

    def test_zero_generations_raised_to_one(self, service, family, org_id):
        view = service.get_tree_view(family['me'], org_id, view_mode='pedigree', generations=0)

        assert {node.generation_level for node in view.persons} == {0, -1}

    def test_generations_above_cap_rejected(self, service, family, org_id):
        with pytest.raises(DepthExceededError):
            service.get_tree_view(family['me'], org_id, generations=11)

    def test_generations_above_cap_clamped(self, graph, tree_cache, family, memory_backend, org_id):
        service = TreeViewService(graph, tree_cache, depth_policy='clamp')

        service.get_tree_view(family['me'], org_id, generations=40)

        assert memory_backend.keys() == [cache_keys.pedigree(org_id, family['me'], 10, False)]

    def test_hourglass_generations(self, service, family, memory_backend, org_id):
        view = service.get_tree_view(family['dad'], org_id, view_mode='hourglass',
                                     ancestor_generations=1, descendant_generations=2)

        assert {node.id for node in view.persons} == {family['dad'], family['grandpa'], family['me']}
        assert memory_backend.keys() == [cache_keys.hourglass(org_id, family['dad'], 1, 2, False)]

    def test_unknown_view_mode(self, service, family, org_id):
        with pytest.raises(ValidationError):
            service.get_tree_view(family['me'], org_id, view_mode='sideways')

    def test_unknown_policy_rejected(self, graph, tree_cache):
        with pytest.raises(ValueError):
            TreeViewService(graph, tree_cache, depth_policy='ignore')

    def test_cancelled_view_not_cached(self, service, family, memory_backend, org_id):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            service.get_tree_view(family['me'], org_id, cancel_token=token)
        assert memory_backend.keys() == []


class TestFamilyGroup:
    """Immediate family of one person"""

    def test_family_group(self, service, family, graph, org_id):
        step_child = graph.add_person('Step', org_id)
        graph.add_parent(family['mom'], step_child)
        lone_child = graph.add_person('Lone', org_id)
        graph.add_parent(family['dad'], lone_child)

        group = service.get_family_group(family['dad'], org_id)

        assert group['person']['display_name'] == 'Dad'
        assert [parent['display_name'] for parent in group['parents']] == ['Grandpa']
        assert len(group['unions']) == 1
        union = group['unions'][0]
        assert union['union']['id'] == str(family['dad_mom_union'])
        assert [partner['display_name'] for partner in union['partners']] == ['Mom']
        assert [child['display_name'] for child in union['children']] == ['Me']
        assert [child['display_name'] for child in group['other_children']] == ['Lone']

    def test_family_group_cached(self, service, family, graph, org_id):
        first = service.get_family_group(family['dad'], org_id)
        graph.reset_calls()

        assert service.get_family_group(family['dad'], org_id) == first
        assert graph.total_calls == 0


class TestRootPersons:
    """Persons without parents, biggest family first"""

    def test_ordering_and_stats(self, service, family, graph, org_id):
        loner = graph.add_person('Loner', org_id, birth_date=date(1900, 1, 1))

        roots = service.get_root_persons(org_id)
        names = [root['display_name'] for root in roots]

        assert names[0] == 'Grandpa'
        assert roots[0]['descendant_count'] == 3
        assert roots[0]['max_generation_depth'] == 2
        assert names[1] == 'Mom'
        assert roots[1]['descendant_count'] == 1
        assert names[2] == 'Loner'
        assert str(loner) == roots[2]['id']

    def test_limit(self, service, family, org_id):
        assert len(service.get_root_persons(org_id, limit=1)) == 1

    def test_invalid_limit(self, service, org_id):
        with pytest.raises(ValidationError):
            service.get_root_persons(org_id, limit=0)


class TestRaisedGenerationCap:
    """TREE_MAX_GENERATIONS above the default keeps every depth apart in the cache"""

    @pytest.fixture
    def chain(self, graph, org_id):
        people = [graph.add_person(f'Gen {n}', org_id) for n in range(14)]
        for parent, child in zip(people, people[1:]):
            graph.add_parent(parent, child)
        graph.reset_calls()
        return people

    def test_views_above_ten_generations_cached_separately(self, graph, memory_backend, chain, org_id):
        tree_cache = TreeCache(ResilientCache(memory_backend), max_generations=12)
        service = TreeViewService(graph, tree_cache, max_generations=12)

        twelve = service.get_tree_view(chain[0], org_id, view_mode='descendants', generations=12)
        eleven = service.get_tree_view(chain[0], org_id, view_mode='descendants', generations=11)
        ten = service.get_tree_view(chain[0], org_id, view_mode='descendants', generations=10)

        assert [twelve.total_persons, eleven.total_persons, ten.total_persons] == [13, 12, 11]
        assert len(memory_backend.keys()) == 3
