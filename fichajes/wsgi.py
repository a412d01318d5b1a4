"""WSGI entry point for gunicorn."""

from fichajes import create_app


app = create_app()
