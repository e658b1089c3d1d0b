#!/usr/bin/env python3
"""
Family Tree Graph - Flask application serving relationship paths and tree views
"""

from tree_app import Config, create_app


def main_cli():
    """CLI entry point"""
    config = Config()
    app = create_app(config)

    print("Family Tree Graph API")
    print("=" * 50)
    print("Relationship paths: /api/orgs/<org_id>/relationship-path")
    print("Tree views:         /api/orgs/<org_id>/tree/<person_id>")
    print()

    app.run(debug=config.debug, host='0.0.0.0', port=5000)

if __name__ == '__main__':
    main_cli()
