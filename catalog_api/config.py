import os

from dotenv import load_dotenv

load_dotenv()

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "movie_catalog")

REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
REDIS_PORT = int(os.environ.get("REDIS_PORT", 6379))
REDIS_DB = int(os.environ.get("REDIS_DB", 0))

CACHE_TTL_SECONDS = int(os.environ.get("CACHE_TTL_SECONDS", 600))

DEFAULT_PAGE_SIZE = int(os.environ.get("DEFAULT_PAGE_SIZE", 10))
MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", 100))

RECOMMENDATION_LIMIT = int(os.environ.get("RECOMMENDATION_LIMIT", 10))
SIMILAR_LIMIT = int(os.environ.get("SIMILAR_LIMIT", 5))
MAX_RECOMMENDATION_LIMIT = int(os.environ.get("MAX_RECOMMENDATION_LIMIT", 60))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
PORT = int(os.environ.get("PORT", 5000))


def as_flask_config():
    """
    Collect the module settings into a mapping for ``app.config``.

    Returns:
        dict: Upper-case settings keyed by name.
    """
    return {
        "MONGO_URI": MONGO_URI,
        "MONGO_DB": MONGO_DB,
        "REDIS_HOST": REDIS_HOST,
        "REDIS_PORT": REDIS_PORT,
        "REDIS_DB": REDIS_DB,
        "CACHE_TTL_SECONDS": CACHE_TTL_SECONDS,
        "DEFAULT_PAGE_SIZE": DEFAULT_PAGE_SIZE,
        "MAX_PAGE_SIZE": MAX_PAGE_SIZE,
        "RECOMMENDATION_LIMIT": RECOMMENDATION_LIMIT,
        "SIMILAR_LIMIT": SIMILAR_LIMIT,
        "MAX_RECOMMENDATION_LIMIT": MAX_RECOMMENDATION_LIMIT,
        "LOG_LEVEL": LOG_LEVEL,
        "ENSURE_INDEXES": True,
    }
