"""
Tests for cache key construction
"""

import uuid
from fnmatch import fnmatchcase

from tree_app.services import cache_keys


ORG = uuid.UUID('11111111-2222-3333-4444-555555555555')
PERSON = uuid.UUID('aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee')
OTHER = uuid.UUID('00000000-0000-0000-0000-000000000001')


class TestCacheKeys:
    """Key formats and normalization"""

    def test_pedigree_key(self):
        key = cache_keys.pedigree(ORG, PERSON, 4, include_spouses=False)
        assert key == f"pedigree:{ORG.hex}:{PERSON.hex}:4:s0"

    def test_descendants_key_with_spouses(self):
        key = cache_keys.descendants(ORG, PERSON, 3, include_spouses=True)
        assert key == f"descendants:{ORG.hex}:{PERSON.hex}:3:s1"

    def test_hourglass_key(self):
        key = cache_keys.hourglass(ORG, PERSON, 2, 5, include_spouses=False)
        assert key == f"hourglass:{ORG.hex}:{PERSON.hex}:2:5:s0"

    def test_generations_embedded_as_given(self):
        """Bounds are applied before key construction, so 10, 11 and 12 stay distinct"""
        keys = {cache_keys.descendants(ORG, PERSON, generations, False) for generations in (10, 11, 12)}

        assert len(keys) == 3
        assert cache_keys.pedigree(ORG, PERSON, 12, False).endswith(":12:s0")

    def test_ids_normalized(self):
        """String and UUID forms of the same id give the same key"""
        upper = str(PERSON).upper()
        assert cache_keys.family(str(ORG), upper) == cache_keys.family(ORG, PERSON)
        assert cache_keys.normalize_id(upper) == PERSON.hex

    def test_relationship_key_is_order_independent(self):
        first = cache_keys.relationship(ORG, PERSON, OTHER, 15)
        second = cache_keys.relationship(ORG, OTHER, PERSON, 15)

        assert first == second
        assert first == f"relationship:{ORG.hex}:{OTHER.hex}:{PERSON.hex}:15"

    def test_all_relationship_keys_cover_every_depth(self):
        keys = cache_keys.all_relationship_keys(ORG, PERSON, OTHER, 20)

        assert len(keys) == 21
        assert cache_keys.relationship(ORG, OTHER, PERSON, 7) in keys

    def test_org_from_key(self):
        assert cache_keys.org_from_key(cache_keys.family(ORG, PERSON)) == ORG.hex
        assert cache_keys.org_from_key('garbage') is None

    def test_org_pattern_matches_only_that_org(self):
        pattern = cache_keys.org_pattern(ORG)

        assert fnmatchcase(cache_keys.pedigree(ORG, PERSON, 2, False), pattern)
        assert fnmatchcase(cache_keys.relationship(ORG, PERSON, OTHER, 3), pattern)
        assert not fnmatchcase(cache_keys.pedigree(uuid.uuid4(), PERSON, 2, False), pattern)

    def test_all_person_keys(self):
        """Every view variant rooted at a person plus the family entry"""
        keys = cache_keys.all_person_keys(ORG, PERSON)

        assert len(keys) == 2 * (10 + 10 + 10 * 10) + 1
        assert len(set(keys)) == len(keys)
        assert cache_keys.hourglass(ORG, PERSON, 10, 1, True) in keys
        assert cache_keys.family(ORG, PERSON) in keys

    def test_all_person_keys_follow_generation_cap(self):
        keys = cache_keys.all_person_keys(ORG, PERSON, max_generations=12)

        assert len(keys) == 2 * (12 + 12 + 12 * 12) + 1
        assert cache_keys.descendants(ORG, PERSON, 12, False) in keys
        assert cache_keys.hourglass(ORG, PERSON, 11, 12, True) in keys
