from flask import Blueprint, current_app, jsonify, request

from ..api_movies.movies_functions import RANKING_CACHE_PREFIX, serialize_movie
from ..common_functions import acting_user_id, cache_get, cache_set, parse_limit_param
from ..store import MOVIES, USERS, collection
from .recommendations_functions import (
    find_similar_movies,
    personalized_recommendations,
    top_rated_movies,
    trending_movies,
)

bp = Blueprint("recommendations", __name__, url_prefix="/api/recommendations")


def requested_limit(default_key: str):
    """
    Read the ``limit`` query parameter with configured default and ceiling.

    Args:
        default_key (str): Config key holding the default limit.

    Returns:
        int: Limit to apply.
    """
    return parse_limit_param(
        request.args.get("limit"),
        current_app.config[default_key],
        current_app.config["MAX_RECOMMENDATION_LIMIT"],
    )


@bp.route("/similar/<movie_id>", methods=["GET"])
def get_similar_titles(movie_id: str):
    """
    Handle GET requests for movies related to the one in the path.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with related movies; empty when the id is unknown.
    """
    limit = requested_limit("SIMILAR_LIMIT")
    movies = find_similar_movies(movie_id, collection(MOVIES), limit)
    return jsonify([serialize_movie(doc) for doc in movies])


@bp.route("/personalized", methods=["GET"])
def get_personalized_recommendations():
    """
    Handle GET requests for recommendations from the user's favourite genres.

    Returns:
        Response: Flask response with recommended movies.
    """
    user_id = acting_user_id()
    limit = requested_limit("RECOMMENDATION_LIMIT")
    movies = personalized_recommendations(user_id, collection(USERS), collection(MOVIES), limit)
    return jsonify([serialize_movie(doc) for doc in movies])


def cached_ranking(name: str, selector):
    limit = requested_limit("RECOMMENDATION_LIMIT")
    cache_key = f"{RANKING_CACHE_PREFIX}{name}:{limit}"
    cached = cache_get(cache_key)
    if cached is not None:
        return jsonify(cached)

    payload = [serialize_movie(doc) for doc in selector(collection(MOVIES), limit)]
    cache_set(cache_key, payload)
    return jsonify(payload)


@bp.route("/trending", methods=["GET"])
def get_trending_movies():
    return cached_ranking("trending", trending_movies)


@bp.route("/top-rated", methods=["GET"])
def get_top_rated_movies():
    return cached_ranking("top_rated", top_rated_movies)
