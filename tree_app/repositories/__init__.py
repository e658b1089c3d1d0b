"""
Repository layer for person graph data access
"""

from .base_repository import BaseRepository, ModelRepository
from .graph_repository import GraphRepository
from .graph_store import GraphStore, PersonSummary, UnionPartner, UnionSummary
from .person_repository import PersonRepository
from .relationship_repository import RelationshipRepository


__all__ = [
    'BaseRepository',
    'GraphRepository',
    'GraphStore',
    'ModelRepository',
    'PersonRepository',
    'PersonSummary',
    'RelationshipRepository',
    'UnionPartner',
    'UnionSummary',
]
