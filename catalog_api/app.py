import logging

from flask import Flask, jsonify
from flask_cors import CORS

from .api_admin.admin import bp as admin_bp
from .api_lists.lists import bp as lists_bp
from .api_movies.movies import bp as movies_bp
from .api_news.news import bp as news_bp
from .api_people.people import bp as people_bp
from .api_recommendations.recommendations import bp as recommendations_bp
from .api_reviews.reviews import bp as reviews_bp
from .api_search.search import bp as search_bp
from .api_users.users import bp as users_bp
from .config import PORT, as_flask_config
from .errors import register_error_handlers
from .store import EXTENSION_KEY, CatalogStore, build_database, build_redis, ensure_indexes

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

BLUEPRINTS = (
    movies_bp,
    people_bp,
    reviews_bp,
    recommendations_bp,
    search_bp,
    lists_bp,
    news_bp,
    users_bp,
    admin_bp,
)

logger = logging.getLogger(__name__)


def create_app(database=None, redis_client=None, **overrides):
    """
    Build the catalog application.

    Args:
        database (Database | None): MongoDB database; opened from config when None.
        redis_client (Redis | None): Cache client; created from config when None.
        **overrides: Values replacing the environment-driven settings.

    Returns:
        Flask: Configured application.
    """
    app = Flask(__name__)
    app.config["JSON_SORT_KEYS"] = False
    app.json.sort_keys = False
    app.config.update(as_flask_config())
    app.config.update(overrides)

    logging.basicConfig(level=app.config["LOG_LEVEL"], format=LOG_FORMAT)
    CORS(app)

    if database is None:
        database = build_database(app.config)
    if redis_client is None:
        redis_client = build_redis(app.config)
    app.extensions[EXTENSION_KEY] = CatalogStore(database, redis_client)

    if app.config["ENSURE_INDEXES"]:
        ensure_indexes(database)

    register_error_handlers(app)
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

    @app.route("/", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "service": "movie-catalog"})

    logger.info("Movie catalog ready on database %s", app.config["MONGO_DB"])
    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=PORT, debug=True)
