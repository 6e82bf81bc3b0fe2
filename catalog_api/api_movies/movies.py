import logging

from flask import Blueprint, jsonify, request
from pymongo import ReturnDocument

from ..api_lists.lists_functions import LIST_DETAIL_CACHE_PREFIX
from ..api_news.news_functions import NEWS_DETAIL_CACHE_PREFIX, NEWS_LIST_CACHE_PREFIX
from ..api_people.people_functions import PERSON_DETAIL_CACHE_PREFIX
from ..common_functions import (
    build_cache_key,
    build_page_payload,
    cache_get,
    cache_set,
    fetch_page,
    find_by_id,
    invalidate_keys,
    invalidate_prefix,
    parse_page_params,
    require_object_id,
    request_payload,
)
from ..errors import NotFound
from ..store import MOVIES, PEOPLE, collection, get_store
from .movies_functions import (
    MOVIE_DETAIL_CACHE_PREFIX,
    MOVIE_LIST_CACHE_PREFIX,
    MOVIE_LIST_SORT,
    RANKING_CACHE_PREFIX,
    build_movie_payload,
    delete_movie_cascade,
    populate_movie_people,
    record_view,
    serialize_movie,
)

logger = logging.getLogger(__name__)

bp = Blueprint("movies", __name__, url_prefix="/api/movies")


def invalidate_movie_caches(movie_id=None):
    """
    Drop cached movie payloads after a write.

    Lists, people and news embed movie summaries, so their cached payloads
    go too whenever an existing movie changes.

    Args:
        movie_id (ObjectId | None): Movie whose detail entry must go too.
    """
    if movie_id is not None:
        invalidate_keys(f"{MOVIE_DETAIL_CACHE_PREFIX}{movie_id}")
        invalidate_prefix(
            LIST_DETAIL_CACHE_PREFIX, PERSON_DETAIL_CACHE_PREFIX, NEWS_DETAIL_CACHE_PREFIX, NEWS_LIST_CACHE_PREFIX
        )
    invalidate_prefix(MOVIE_LIST_CACHE_PREFIX, RANKING_CACHE_PREFIX)


@bp.route("", methods=["GET"])
def list_movies():
    """
    Handle GET requests for the paginated movie list.

    Returns:
        Response: Flask response with the page payload.
    """
    page, page_size, skip = parse_page_params(request.args)
    cache_key = build_cache_key("movies", page, page_size)
    cached = cache_get(cache_key)
    if cached:
        return jsonify(cached)

    documents, total = fetch_page(collection(MOVIES), {}, MOVIE_LIST_SORT, skip, page_size)
    populate_movie_people(documents, collection(PEOPLE))
    payload = build_page_payload([serialize_movie(doc) for doc in documents], page, page_size, total)
    cache_set(cache_key, payload)
    return jsonify(payload)


@bp.route("", methods=["POST"])
def add_movie():
    """
    Handle POST requests that insert a movie.

    Returns:
        Response: Flask response with the stored movie and status code.
    """
    payload = build_movie_payload(request_payload())
    movies = collection(MOVIES)
    result = movies.insert_one(payload)
    document = movies.find_one({"_id": result.inserted_id})
    invalidate_movie_caches()
    logger.info("Movie added: %s", document.get("title"))
    return jsonify(serialize_movie(document)), 201


@bp.route("/<movie_id>", methods=["GET"])
def get_movie(movie_id: str):
    """
    Handle GET requests for a movie, counting the view.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with the populated movie.
    """
    object_id = require_object_id(movie_id, "movie id")
    movies = collection(MOVIES)
    if not record_view(object_id, movies):
        logger.warning("Attempt to fetch non-existent movie: %s", movie_id)
        raise NotFound("Movie not found")

    cache_key = f"{MOVIE_DETAIL_CACHE_PREFIX}{object_id}"
    cached = cache_get(cache_key)
    if cached:
        return jsonify(cached)

    document = find_by_id(movies, object_id, "Movie")
    populate_movie_people([document], collection(PEOPLE))
    serialized = serialize_movie(document)
    cache_set(cache_key, serialized)
    return jsonify(serialized)


@bp.route("/<movie_id>", methods=["PUT"])
def update_movie(movie_id: str):
    """
    Handle PUT requests that change movie fields.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with the updated movie.
    """
    object_id = require_object_id(movie_id, "movie id")
    updates = build_movie_payload(request_payload(), partial=True)
    document = collection(MOVIES).find_one_and_update(
        {"_id": object_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not document:
        logger.warning("Attempt to update non-existent movie: %s", movie_id)
        raise NotFound("Movie not found")

    invalidate_movie_caches(object_id)
    logger.info("Movie updated: %s", document.get("title"))
    return jsonify(serialize_movie(document))


@bp.route("/<movie_id>", methods=["DELETE"])
def delete_movie(movie_id: str):
    """
    Handle DELETE requests, removing the movie and its dependents.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with a confirmation payload.
    """
    document = find_by_id(collection(MOVIES), movie_id, "Movie")
    removed = delete_movie_cascade(document["_id"], get_store().database)
    invalidate_movie_caches(document["_id"])
    logger.info("Movie deleted: %s", document.get("title"))
    return jsonify({"message": "Movie deleted successfully", "removed": removed})
