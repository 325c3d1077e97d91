import os
from dotenv import load_dotenv

load_dotenv()


def _database_url():
    url = os.getenv('DATABASE_URL')
    if url:
        return url
    host = os.getenv('ISHOCON1_DB_HOST', 'localhost')
    port = os.getenv('ISHOCON1_DB_PORT')
    user = os.getenv('ISHOCON1_DB_USER', 'ishocon')
    password = os.getenv('ISHOCON1_DB_PASSWORD', 'ishocon')
    name = os.getenv('ISHOCON1_DB_NAME', 'ishocon1')
    netloc = f"{host}:{port}" if port else host
    return f"mysql+pymysql://{user}:{password}@{netloc}/{name}?charset=utf8mb4"


def load_config():
    """Build the Flask config mapping from the environment (and .env)."""
    redis_url = os.getenv('ISHOCON1_REDIS_URL', 'redis://localhost:6379/0')
    return {
        'SQLALCHEMY_DATABASE_URI': _database_url(),
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SQLALCHEMY_ENGINE_OPTIONS': {'pool_pre_ping': True},
        'SECRET_KEY': os.getenv('SECRET_KEY', 'devsecret'),
        'REDIS_URL': redis_url,
        'SESSION_REDIS_URL': os.getenv('ISHOCON1_SESSION_REDIS_URL', redis_url),
        'ITERATION': int(os.getenv('ISHOCON1_ITERATION', '3')),
        'FRAGMENT_CACHE_DIR': os.getenv('ISHOCON1_FRAGMENT_CACHE_DIR', '/tmp/ishocon1_cache'),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO').upper(),
        'PERMANENT_SESSION_LIFETIME': 3600,
    }
