"""
Database configuration and models for the family tree graph
"""

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()
migrate = Migrate()


def init_app(app):
    """Initialize database extensions with Flask app"""
    db.init_app(app)
    migrate.init_app(app, db)

    # Import all models so db.create_all() sees them in tests
    from tree_app.database import models  # noqa: F401
