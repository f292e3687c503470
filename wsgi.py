"""
WSGI / Flask CLI entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi create-admin --code hq --name "Head Office" --password ...
    flask --app wsgi db migrate -m "description"
"""

from reporttracker import create_app

app = create_app()
