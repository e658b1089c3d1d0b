"""
Flask CLI commands for the family tree graph
"""

import json

import click

from tree_app.blueprints.blueprint_utils import get_tree_view_service
from tree_app.services.exceptions import ServiceError


def register_commands(app):
    """Register all CLI commands with the Flask app"""

    @app.cli.command('find-path')
    @click.argument('org_id')
    @click.argument('person1_id')
    @click.argument('person2_id')
    @click.option('--max-depth', type=int, default=None, help='Maximum search depth per side')
    def find_path(org_id, person1_id, person2_id, max_depth):
        """Find and name the relationship between two persons."""
        try:
            result = get_tree_view_service().find_relationship_path(
                person1_id, person2_id, org_id, max_depth=max_depth)
        except ServiceError as e:
            click.echo(f"❌ {e}", err=True)
            raise SystemExit(1) from e

        if not result.path_found:
            click.echo(f"No relationship found: {result.error_message}")
            return

        click.echo(f"{result.relationship_label} ({result.gendered_label}), path length {result.path_length}")
        for node in result.path:
            edge = f" --{node['edge_to_next']}-->" if node['edge_to_next'] else ''
            click.echo(f"  {node['display_name'] or node['person_id']}{edge}")

    @app.cli.command('tree-view')
    @click.argument('org_id')
    @click.argument('person_id')
    @click.option('--view', type=click.Choice(['pedigree', 'descendants', 'hourglass']), default='pedigree')
    @click.option('--generations', type=int, default=None, help='Generations to expand')
    @click.option('--include-spouses', is_flag=True, help='Add union partners as leaves')
    def tree_view(org_id, person_id, view, generations, include_spouses):
        """Print a tree view as JSON."""
        try:
            result = get_tree_view_service().get_tree_view(
                person_id, org_id, view_mode=view, generations=generations, include_spouses=include_spouses)
        except ServiceError as e:
            click.echo(f"❌ {e}", err=True)
            raise SystemExit(1) from e
        click.echo(json.dumps(result.to_dict(), indent=2))

    @app.cli.command('purge-cache')
    @click.argument('org_id')
    @click.option('--background', is_flag=True, help='Queue the purge on a Celery worker')
    def purge_cache(org_id, background):
        """Drop every cached tree view and path of a tenant."""
        from tree_app.tasks.cache_tasks import purge_org_tree_cache

        if background:
            task = purge_org_tree_cache.delay(org_id)
            click.echo(f"Task ID: {task.id}")
            return

        result = purge_org_tree_cache.apply(args=(org_id,)).get()
        click.echo(f"✅ Removed {result['removed']} cached entries")
