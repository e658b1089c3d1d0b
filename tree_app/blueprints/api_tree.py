"""
Tree and relationship API blueprint
"""

from flask import Blueprint, jsonify, request

from tree_app.blueprints.blueprint_utils import (
    TaskSubmissionError,
    bool_arg,
    get_tree_view_service,
    int_arg,
    safe_task_submit,
)
from tree_app.services.base_service import BaseService
from tree_app.services.exceptions import ValidationError
from tree_app.shared.logging_config import get_project_logger


logger = get_project_logger(__name__)

api_tree = Blueprint('api_tree', __name__, url_prefix='/api/orgs/<org_id>')


@api_tree.route('/relationship-path', methods=['GET'])
def relationship_path(org_id):
    """Shortest relationship path between two persons and its name"""
    person1 = request.args.get('person1')
    person2 = request.args.get('person2')
    if not person1 or not person2:
        raise ValidationError('Both person1 and person2 are required')

    result = get_tree_view_service().find_relationship_path(
        person1, person2, org_id, max_depth=int_arg('max_depth'))
    return jsonify({'success': True, **result.to_dict()})


@api_tree.route('/tree/<person_id>', methods=['GET'])
def tree_view(org_id, person_id):
    """Pedigree, descendants or hourglass view rooted at a person"""
    view = get_tree_view_service().get_tree_view(
        person_id,
        org_id,
        view_mode=request.args.get('view', 'pedigree'),
        generations=int_arg('generations'),
        include_spouses=bool_arg('include_spouses'),
        ancestor_generations=int_arg('ancestor_generations'),
        descendant_generations=int_arg('descendant_generations'),
    )
    if request.args.get('format') == 'nested':
        return jsonify({'success': True, 'root_person_id': str(view.root_person_id),
                        'view_mode': view.view_mode.value, 'total_persons': view.total_persons,
                        'tree': view.to_nested()})
    return jsonify({'success': True, **view.to_dict()})


@api_tree.route('/family/<person_id>', methods=['GET'])
def family_group(org_id, person_id):
    """Parents, unions and children of a person"""
    group = get_tree_view_service().get_family_group(person_id, org_id)
    return jsonify({'success': True, **group})


@api_tree.route('/roots', methods=['GET'])
def root_persons(org_id):
    """Persons without parents, largest families first"""
    roots = get_tree_view_service().get_root_persons(org_id, limit=int_arg('limit'))
    return jsonify({'success': True, 'persons': roots, 'count': len(roots)})


@api_tree.route('/cache/purge', methods=['POST'])
def purge_cache(org_id):
    """Queue a background purge of every cached entry of the tenant"""
    from tree_app.tasks.cache_tasks import purge_org_tree_cache

    org = str(BaseService.parse_id(org_id, 'org_id'))
    try:
        task = safe_task_submit(purge_org_tree_cache.delay, 'cache purge', org)
    except TaskSubmissionError as e:
        return jsonify({'success': False, 'error': str(e)}), 503

    logger.info(f"Queued cache purge for org {org} as task {task.id}")
    return jsonify({'success': True, 'task_id': task.id}), 202
