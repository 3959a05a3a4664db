"""
WSGI entry point for the transport scheduling dashboard.

Usage (for example with gunicorn)::

    gunicorn wsgi:app

"""

from app import create_app

app = create_app()

__all__ = ["app"]
