"""
Flask-Migrate / Alembic entry point.

Usage:
    flask db upgrade
    flask db migrate -m "description"
    flask seed-milestone-templates
"""

from gradtrack import create_app

app = create_app()
