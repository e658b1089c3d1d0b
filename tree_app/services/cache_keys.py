"""
Cache key construction for tree views and relationship paths

Keys are colon separated with the tenant directly after the view kind, so a
single pattern (``*:{org}:*``) matches every entry of one tenant. Ids are
lowercase hex without dashes. Generation counts are embedded as given; callers
resolve them against the configured bounds first.
"""

import uuid

MIN_GENERATIONS = 1
MAX_GENERATIONS = 10

PEDIGREE = 'pedigree'
DESCENDANTS = 'descendants'
HOURGLASS = 'hourglass'
FAMILY = 'family'
RELATIONSHIP = 'relationship'


def normalize_id(value) -> str:
    if isinstance(value, uuid.UUID):
        return value.hex
    return uuid.UUID(str(value)).hex


def _spouse_flag(include_spouses: bool) -> str:
    return 's1' if include_spouses else 's0'


def pedigree(org_id, person_id, generations: int, include_spouses: bool) -> str:
    return (f"{PEDIGREE}:{normalize_id(org_id)}:{normalize_id(person_id)}:"
            f"{generations}:{_spouse_flag(include_spouses)}")


def descendants(org_id, person_id, generations: int, include_spouses: bool) -> str:
    return (f"{DESCENDANTS}:{normalize_id(org_id)}:{normalize_id(person_id)}:"
            f"{generations}:{_spouse_flag(include_spouses)}")


def hourglass(org_id, person_id, ancestor_generations: int, descendant_generations: int,
              include_spouses: bool) -> str:
    return (f"{HOURGLASS}:{normalize_id(org_id)}:{normalize_id(person_id)}:"
            f"{ancestor_generations}:{descendant_generations}:"
            f"{_spouse_flag(include_spouses)}")


def family(org_id, person_id) -> str:
    return f"{FAMILY}:{normalize_id(org_id)}:{normalize_id(person_id)}"


def canonical_pair(person1_id, person2_id) -> tuple[str, str]:
    first, second = normalize_id(person1_id), normalize_id(person2_id)
    return (first, second) if first <= second else (second, first)


def relationship(org_id, person1_id, person2_id, max_depth: int) -> str:
    first, second = canonical_pair(person1_id, person2_id)
    return f"{RELATIONSHIP}:{normalize_id(org_id)}:{first}:{second}:{max_depth}"


def all_relationship_keys(org_id, person1_id, person2_id, max_depth_cap: int) -> list[str]:
    """Every cached max_depth variant of one pair"""
    return [relationship(org_id, person1_id, person2_id, depth) for depth in range(max_depth_cap + 1)]


def relationship_org_pattern(org_id) -> str:
    return f"{RELATIONSHIP}:{normalize_id(org_id)}:*"


def org_pattern(org_id) -> str:
    return f"*:{normalize_id(org_id)}:*"


def org_from_key(key: str) -> str | None:
    parts = key.split(':')
    return parts[1] if len(parts) > 1 else None


def all_person_keys(org_id, person_id, max_generations: int = MAX_GENERATIONS) -> list[str]:
    """Every rooted view variant of a person up to max_generations, plus the family group entry"""
    keys = []
    for include_spouses in (False, True):
        for generations in range(MIN_GENERATIONS, max_generations + 1):
            keys.append(pedigree(org_id, person_id, generations, include_spouses))
            keys.append(descendants(org_id, person_id, generations, include_spouses))
        for ancestor_generations in range(MIN_GENERATIONS, max_generations + 1):
            for descendant_generations in range(MIN_GENERATIONS, max_generations + 1):
                keys.append(hourglass(org_id, person_id, ancestor_generations,
                                      descendant_generations, include_spouses))
    keys.append(family(org_id, person_id))
    return keys
