from flask import Blueprint, current_app, jsonify, request

from ..api_movies.movies_functions import populate_movie_people, serialize_movie
from ..api_recommendations.recommendations_functions import (
    recommend_by_genres,
    top_movies_of_month,
)
from ..common_functions import build_page_payload, fetch_page, parse_limit_param, parse_page_params, utc_now
from ..store import MOVIES, PEOPLE, collection
from .search_functions import build_search_filter

bp = Blueprint("search", __name__, url_prefix="/api/search")


def _ranking_limit():
    return parse_limit_param(
        request.args.get("limit"),
        current_app.config["RECOMMENDATION_LIMIT"],
        current_app.config["MAX_RECOMMENDATION_LIMIT"],
    )


@bp.route("", methods=["GET"])
def search_movies():
    """
    Handle GET requests searching movies by text, genre, rating and year.

    Returns:
        Response: Flask response with the page payload.
    """
    criteria, sort = build_search_filter(request.args.to_dict())
    page, page_size, skip = parse_page_params(request.args)
    documents, total = fetch_page(collection(MOVIES), criteria, sort, skip, page_size)
    populate_movie_people(documents, collection(PEOPLE))
    results = [serialize_movie(doc) for doc in documents]
    return jsonify(build_page_payload(results, page, page_size, total, sortBy=sort[0][0]))


@bp.route("/genre/<genre>", methods=["GET"])
def get_top_movies_by_genre(genre: str):
    """
    Handle GET requests for the best rated movies of one genre.

    Args:
        genre (str): Genre name from the path segment.

    Returns:
        Response: Flask response with the movies.
    """
    movies = recommend_by_genres([genre.strip()], collection(MOVIES), _ranking_limit())
    return jsonify([serialize_movie(doc) for doc in movies])


@bp.route("/top-of-month", methods=["GET"])
def get_top_movies_of_the_month():
    movies = top_movies_of_month(collection(MOVIES), utc_now(), _ranking_limit())
    return jsonify([serialize_movie(doc) for doc in movies])
