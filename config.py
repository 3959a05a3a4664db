# config.py
"""
Configuration for the transport scheduling dashboard.

Everything is read from the environment so the same code runs locally
(sqlite file) and against the hosted database. To change the site password,
set SITE_PASSWORD before starting the server.
"""

import os
from datetime import timedelta

from store import StoreConfig


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-only-change-me')
    SITE_PASSWORD = os.environ.get('SITE_PASSWORD', '')
    PERMANENT_SESSION_LIFETIME = timedelta(days=int(os.environ.get('SESSION_DAYS', 7)))
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    STORE = StoreConfig.from_env()
    SQLALCHEMY_TRACK_MODIFICATIONS = False


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SITE_PASSWORD = 'letmein'
    STORE = StoreConfig(url='sqlite:///:memory:')
