import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # Provide a safe development fallback to avoid 500s when SECRET_KEY is missing.
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-me'
    DATABASE_URL = os.getenv('DATABASE_URL')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL or 'sqlite:///studiohub.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    JSON_SORT_KEYS = False

    # Self-service slug/name edits on unverified entities are rate limited
    SLUG_CHANGE_COOLDOWN_HOURS = int(os.getenv('SLUG_CHANGE_COOLDOWN_HOURS', '24'))

    # Temporary "pending-*" slug generation
    TEMP_SLUG_MAX_ATTEMPTS = int(os.getenv('TEMP_SLUG_MAX_ATTEMPTS', '10'))
    TEMP_SLUG_SUFFIX_LENGTH = int(os.getenv('TEMP_SLUG_SUFFIX_LENGTH', '10'))

    # Request rate limiting (Flask-Limiter)
    RATELIMIT_ENABLED = os.getenv('RATELIMIT_ENABLED', 'true').lower() in ('1', 'true', 'yes')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    CLAIM_RATE_LIMIT = os.getenv('CLAIM_RATE_LIMIT', '10 per minute')
    CHANGE_REQUEST_RATE_LIMIT = os.getenv('CHANGE_REQUEST_RATE_LIMIT', '10 per minute')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SESSION_COOKIE_SECURE = False
    RATELIMIT_ENABLED = False
