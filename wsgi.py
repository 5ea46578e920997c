"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-reference-data
    gunicorn wsgi:app
"""

from gemba import create_app

app = create_app()
