"""
Tenant-scoped memoization of tree views and relationship paths

Invalidation contract: a mutation purges every cached view rooted at the
mutated person (and at both endpoints of a mutated edge), the family group
entries around it, and every cached relationship path of the tenant. Views
rooted at more distant relatives may keep serving the old structure until
their TTL expires, unless wide invalidation is switched on, in which case
the ancestors and descendants of the endpoints (up to the generation cap)
are purged as well.
"""

from __future__ import annotations

import uuid

from tree_app.repositories.graph_store import GraphStore
from tree_app.services import cache_keys
from tree_app.services.cache_backend import ResilientCache
from tree_app.services.exceptions import TenantMismatchError
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

PEDIGREE_TTL = 24 * 60 * 60
DEFAULT_TTL = 6 * 60 * 60


class TreeCache:
    """Typed front of the ResilientCache for tree and path results"""

    def __init__(self, cache: ResilientCache, pedigree_ttl: int = PEDIGREE_TTL, default_ttl: int = DEFAULT_TTL,
                 max_depth_cap: int = 20, wide_invalidation: bool = False,
                 max_generations: int = cache_keys.MAX_GENERATIONS):
        self.cache = cache
        self.pedigree_ttl = pedigree_ttl
        self.default_ttl = default_ttl
        self.max_depth_cap = max_depth_cap
        self.wide_invalidation = wide_invalidation
        self.max_generations = max_generations

    def ttl_for(self, key: str) -> int:
        return self.pedigree_ttl if key.startswith(f"{cache_keys.PEDIGREE}:") else self.default_ttl

    @staticmethod
    def _check_tenant(key: str, org_id) -> str:
        org = cache_keys.normalize_id(org_id)
        if cache_keys.org_from_key(key) != org:
            raise TenantMismatchError(f"Cache key {key} does not belong to org {org}")
        return org

    def get(self, key: str, org_id) -> dict | None:
        """Cached value or None on a miss; raises TenantMismatchError on a cross-tenant entry"""
        org = self._check_tenant(key, org_id)
        entry = self.cache.get_json(key)
        if entry is None:
            logger.debug(f"Cache miss {key}")
            return None
        if entry.get('org_id') != org:
            raise TenantMismatchError(f"Cache entry {key} belongs to org {entry.get('org_id')}, not {org}")
        logger.debug(f"Cache hit {key}")
        return entry.get('value')

    def set(self, key: str, value: dict, org_id, ttl_seconds: int | None = None) -> bool:
        org = self._check_tenant(key, org_id)
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_for(key)
        return self.cache.set_json(key, {'org_id': org, 'value': value}, ttl)

    def invalidate_person(self, person_id, org_id) -> bool:
        """Purge every view variant rooted at the person and their family group"""
        logger.info(f"Invalidating cached views of person {person_id} in org {org_id}")
        return self.cache.remove(cache_keys.all_person_keys(org_id, person_id, self.max_generations))

    def invalidate_relationship_path(self, person1_id, person2_id, org_id) -> bool:
        return self.cache.remove(
            cache_keys.all_relationship_keys(org_id, person1_id, person2_id, self.max_depth_cap)
        )

    def invalidate_org_paths(self, org_id) -> int:
        return self.cache.remove_pattern(cache_keys.relationship_org_pattern(org_id))

    def purge_org(self, org_id) -> int:
        """Drop every cached entry of a tenant (bulk imports and merges)"""
        removed = self.cache.remove_pattern(cache_keys.org_pattern(org_id))
        logger.info(f"Purged {removed} cached entries of org {org_id}")
        return removed

    def on_person_mutated(self, person_id, org_id, graph_store: GraphStore | None = None):
        self.invalidate_person(person_id, org_id)
        self.invalidate_org_paths(org_id)
        if graph_store is not None:
            neighbours = self.neighbours(graph_store, [person_id], org_id)
            self.cache.remove([cache_keys.family(org_id, pid) for pid in neighbours])
            if self.wide_invalidation:
                self._invalidate_lineage(graph_store, [person_id], org_id)

    def on_edge_mutated(self, person1_id, person2_id, org_id, graph_store: GraphStore | None = None):
        """Call after a parent-child or union change between two persons was written"""
        self.invalidate_person(person1_id, org_id)
        self.invalidate_person(person2_id, org_id)
        self.invalidate_relationship_path(person1_id, person2_id, org_id)
        self.invalidate_org_paths(org_id)
        if graph_store is not None and self.wide_invalidation:
            self._invalidate_lineage(graph_store, [person1_id, person2_id], org_id)

    @staticmethod
    def neighbours(graph_store: GraphStore, person_ids, org_id) -> set[uuid.UUID]:
        parents = graph_store.get_parents_batch(person_ids, org_id)
        children = graph_store.get_children_batch(person_ids, org_id)
        partners = graph_store.get_union_partners_batch(person_ids, org_id)
        found = set()
        for person_id in person_ids:
            found.update(parents.get(person_id, []))
            found.update(children.get(person_id, []))
            found.update(p.person_id for p in partners.get(person_id, []))
        return found

    def _invalidate_lineage(self, graph_store: GraphStore, start_ids, org_id):
        """Purge views rooted at ancestors and descendants of the given persons"""
        affected = set()
        for fetch in (graph_store.get_parents_batch, graph_store.get_children_batch):
            seen = set(start_ids)
            layer = list(start_ids)
            for _ in range(self.max_generations):
                adjacency = fetch(layer, org_id)
                layer = [pid for pid in dict.fromkeys(
                    relative for person_id in layer for relative in adjacency.get(person_id, [])
                ) if pid not in seen]
                if not layer:
                    break
                seen.update(layer)
                affected.update(layer)

        partners = graph_store.get_union_partners_batch(list(start_ids), org_id)
        for person_id in start_ids:
            affected.update(p.person_id for p in partners.get(person_id, []))
        affected.difference_update(start_ids)

        keys = []
        for person_id in affected:
            keys.extend(cache_keys.all_person_keys(org_id, person_id, self.max_generations))
        if keys:
            logger.info(f"Wide invalidation of {len(affected)} related persons in org {org_id}")
            self.cache.remove(keys)
