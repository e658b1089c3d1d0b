"""
Graph mutation API blueprint: persons, parent-child edges and unions
"""

from flask import Blueprint, jsonify, request

from tree_app.blueprints.blueprint_utils import get_mutation_service, json_body
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

api_graph = Blueprint('api_graph', __name__, url_prefix='/api/orgs/<org_id>')


def _person_payload(person):
    return {
        'id': str(person.id),
        'primary_name': person.primary_name,
        'sex': person.sex.value if person.sex else None,
        'birth_date': person.birth_date.isoformat() if person.birth_date else None,
        'death_date': person.death_date.isoformat() if person.death_date else None,
        'is_living': person.is_living,
    }


@api_graph.route('/persons', methods=['POST'])
def create_person(org_id):
    """Create a person in the tenant"""
    data = json_body()
    person = get_mutation_service().create_person(org_id, **data)
    return jsonify({'success': True, 'person': _person_payload(person)}), 201


@api_graph.route('/persons/<person_id>', methods=['PATCH'])
def update_person(org_id, person_id):
    """Update demographic fields of a person"""
    data = json_body()
    person = get_mutation_service().update_person(person_id, org_id, **data)
    return jsonify({'success': True, 'person': _person_payload(person)})


@api_graph.route('/persons/<person_id>', methods=['DELETE'])
def delete_person(org_id, person_id):
    get_mutation_service().delete_person(person_id, org_id)
    return jsonify({'success': True, 'message': 'Person deleted'})


@api_graph.route('/parent-child', methods=['POST'])
def add_parent_child(org_id):
    """Link a parent to a child"""
    data = json_body(['parent_id', 'child_id'])
    edge = get_mutation_service().add_parent_child(
        data['parent_id'], data['child_id'], org_id,
        relationship_type=data.get('relationship_type', 'biological'),
    )
    return jsonify({
        'success': True,
        'edge': {
            'id': str(edge.id),
            'parent_id': str(edge.parent_id),
            'child_id': str(edge.child_id),
            'relationship_type': edge.relationship_type.value,
        },
    }), 201


@api_graph.route('/parent-child', methods=['DELETE'])
def remove_parent_child(org_id):
    data = json_body(['parent_id', 'child_id'])
    get_mutation_service().remove_parent_child(data['parent_id'], data['child_id'], org_id)
    return jsonify({'success': True, 'message': 'Parent-child link removed'})


@api_graph.route('/unions', methods=['POST'])
def create_union(org_id):
    """Create a union between two or more persons"""
    data = json_body(['member_ids'])
    union = get_mutation_service().create_union(
        org_id,
        data['member_ids'],
        union_type=data.get('type', 'marriage'),
        start_date=data.get('start_date'),
        end_date=data.get('end_date'),
    )
    return jsonify({
        'success': True,
        'union': {
            'id': str(union.id),
            'type': union.type.value,
            'member_ids': [str(member.person_id) for member in union.members if not member.is_deleted],
        },
    }), 201


@api_graph.route('/unions/<union_id>/members', methods=['POST'])
def add_union_member(org_id, union_id):
    data = json_body(['person_id'])
    member = get_mutation_service().add_union_member(
        union_id, data['person_id'], org_id, role=data.get('role', 'Spouse'))
    return jsonify({
        'success': True,
        'member': {'union_id': str(member.union_id), 'person_id': str(member.person_id), 'role': member.role},
    }), 201


@api_graph.route('/unions/<union_id>/members', methods=['DELETE'])
def remove_union_member(org_id, union_id):
    data = json_body(['person_id'])
    get_mutation_service().remove_union_member(union_id, data['person_id'], org_id)
    return jsonify({'success': True, 'message': 'Union member removed'})
