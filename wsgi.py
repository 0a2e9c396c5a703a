"""
WSGI and Flask-Migrate / Alembic entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-status-transitions
    gunicorn wsgi:app
"""

from advisory_hub import create_app

app = create_app()
