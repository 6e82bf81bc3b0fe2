import logging

from flask import current_app
from pymongo import ASCENDING, TEXT, MongoClient
import redis

logger = logging.getLogger(__name__)

EXTENSION_KEY = "catalog_store"

MOVIES = "movies"
PEOPLE = "people"
REVIEWS = "reviews"
LISTS = "lists"
USERS = "users"
NEWS = "news"


def build_database(config: dict):
    """
    Open the MongoDB database named in the configuration.

    Args:
        config (dict): Application configuration.

    Returns:
        Database: PyMongo database handle.
    """
    client = MongoClient(config["MONGO_URI"])
    return client[config["MONGO_DB"]]


def build_redis(config: dict):
    """
    Create the Redis client used as response cache.

    Args:
        config (dict): Application configuration.

    Returns:
        Redis: Redis client instance.
    """
    return redis.Redis(
        host=config["REDIS_HOST"],
        port=config["REDIS_PORT"],
        db=config["REDIS_DB"],
    )


def ensure_indexes(database):
    """
    Create the text and uniqueness indexes the API relies on.

    Args:
        database (Database): PyMongo database handle.
    """
    database[MOVIES].create_index([("title", TEXT), ("synopsis", TEXT)], name="movies_text")
    database[MOVIES].create_index([("average_rating", ASCENDING)])
    database[MOVIES].create_index([("genres", ASCENDING)])
    database[PEOPLE].create_index([("name", TEXT), ("biography", TEXT)], name="people_text")
    database[REVIEWS].create_index([("movie", ASCENDING), ("user", ASCENDING)], unique=True)
    database[LISTS].create_index([("name", TEXT), ("description", TEXT)], name="lists_text")
    database[NEWS].create_index([("title", TEXT), ("content", TEXT), ("tags", TEXT)], name="news_text")
    database[USERS].create_index([("username", ASCENDING)], unique=True)
    database[USERS].create_index([("email", ASCENDING)], unique=True)
    logger.info("Indexes ensured on %s", getattr(database, "name", "database"))


class CatalogStore:
    """Database and cache handles shared by the blueprints of one app."""

    def __init__(self, database, redis_client):
        self.database = database
        self.redis = redis_client

    def collection(self, name: str):
        return self.database[name]


def get_store():
    return current_app.extensions[EXTENSION_KEY]


def collection(name: str):
    """
    Return the named collection of the current application.

    Args:
        name (str): Collection name.

    Returns:
        Collection: PyMongo collection handle.
    """
    return get_store().collection(name)


def cache_client():
    return get_store().redis
