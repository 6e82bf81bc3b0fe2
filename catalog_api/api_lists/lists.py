import logging

from flask import Blueprint, jsonify, request
from pymongo import DESCENDING, ReturnDocument

from ..api_movies.movies_functions import serialize_movie
from ..common_functions import (
    acting_user_id,
    build_cache_key,
    build_page_payload,
    cache_get,
    cache_set,
    fetch_page,
    find_by_id,
    invalidate_keys,
    invalidate_prefix,
    parse_page_params,
    populate,
    request_payload,
    require_object_id,
    serialize_document,
)
from ..errors import NotFound
from ..store import LISTS, MOVIES, USERS, collection
from .lists_functions import (
    LIST_DETAIL_CACHE_PREFIX,
    MOVIE_SUMMARY_PROJECTION,
    PUBLIC_LISTS_CACHE_PREFIX,
    USER_SUMMARY_PROJECTION,
    add_movie_to_list,
    build_list_payload,
    check_movies_exist,
    remove_movie_from_list,
    set_following,
)

logger = logging.getLogger(__name__)

bp = Blueprint("lists", __name__, url_prefix="/api/lists")


def invalidate_list_caches(list_id=None):
    if list_id is not None:
        invalidate_keys(f"{LIST_DETAIL_CACHE_PREFIX}{list_id}")
    invalidate_prefix(PUBLIC_LISTS_CACHE_PREFIX)


def serialize_list(document: dict, with_movies: bool = False):
    """
    Populate a list's creator, and optionally its movies, then serialize it.

    Args:
        document (dict): List document.
        with_movies (bool): Resolve movie ids into movie summaries.

    Returns:
        dict: JSON-ready list.
    """
    populate([document], "creator", collection(USERS), USER_SUMMARY_PROJECTION)
    if with_movies:
        populate([document], "movies", collection(MOVIES), MOVIE_SUMMARY_PROJECTION)
        document["movies"] = [serialize_movie(movie) for movie in document["movies"]]
    return serialize_document(document)


@bp.route("", methods=["GET"])
def get_public_lists():
    """
    Handle GET requests for public lists, newest first.

    Returns:
        Response: Flask response with the page payload.
    """
    page, page_size, skip = parse_page_params(request.args)
    cache_key = build_cache_key("lists", page, page_size)
    cached = cache_get(cache_key)
    if cached:
        return jsonify(cached)

    documents, total = fetch_page(
        collection(LISTS),
        {"is_public": True},
        [("created_at", DESCENDING), ("_id", DESCENDING)],
        skip,
        page_size,
    )
    populate(documents, "creator", collection(USERS), USER_SUMMARY_PROJECTION)
    payload = build_page_payload([serialize_document(doc) for doc in documents], page, page_size, total)
    cache_set(cache_key, payload)
    return jsonify(payload)


@bp.route("", methods=["POST"])
def create_list():
    """
    Handle POST requests that create a list for the acting user.

    Returns:
        Response: Flask response with the created list.
    """
    body = request_payload()
    user_id = acting_user_id(body)
    find_by_id(collection(USERS), user_id, "User", {"_id": 1})
    payload = build_list_payload(body, creator_id=user_id)
    check_movies_exist(payload["movies"], collection(MOVIES))

    lists = collection(LISTS)
    result = lists.insert_one(payload)
    document = lists.find_one({"_id": result.inserted_id})
    invalidate_list_caches()
    logger.info("List created: %s", document.get("name"))
    return jsonify(serialize_list(document)), 201


@bp.route("/<list_id>", methods=["GET"])
def get_list(list_id: str):
    """
    Handle GET requests for one list with its movies resolved.

    Args:
        list_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with list data.
    """
    object_id = require_object_id(list_id, "list id")
    cache_key = f"{LIST_DETAIL_CACHE_PREFIX}{object_id}"
    cached = cache_get(cache_key)
    if cached:
        return jsonify(cached)

    document = find_by_id(collection(LISTS), object_id, "List")
    serialized = serialize_list(document, with_movies=True)
    cache_set(cache_key, serialized)
    return jsonify(serialized)


@bp.route("/<list_id>", methods=["PUT"])
def update_list(list_id: str):
    object_id = require_object_id(list_id, "list id")
    updates = build_list_payload(request_payload(), partial=True)
    if "movies" in updates:
        check_movies_exist(updates["movies"], collection(MOVIES))

    document = collection(LISTS).find_one_and_update(
        {"_id": object_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not document:
        logger.warning("Attempt to update non-existent list: %s", list_id)
        raise NotFound("List not found")
    invalidate_list_caches(object_id)
    logger.info("List updated: %s", document.get("name"))
    return jsonify(serialize_list(document))


@bp.route("/<list_id>", methods=["DELETE"])
def delete_list(list_id: str):
    document = find_by_id(collection(LISTS), list_id, "List")
    collection(LISTS).delete_one({"_id": document["_id"]})
    invalidate_list_caches(document["_id"])
    logger.info("List deleted: %s", document.get("name"))
    return jsonify({"message": "List deleted successfully"})


@bp.route("/<list_id>/follow", methods=["POST"])
def follow_list(list_id: str):
    """
    Handle POST requests adding the acting user to a list's followers.

    Args:
        list_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with the updated list.
    """
    user_id = acting_user_id(request_payload())
    find_by_id(collection(USERS), user_id, "User", {"_id": 1})
    document = set_following(list_id, user_id, collection(LISTS), follow=True)
    invalidate_list_caches(document["_id"])
    return jsonify(serialize_list(document))


@bp.route("/<list_id>/unfollow", methods=["POST"])
def unfollow_list(list_id: str):
    user_id = acting_user_id(request_payload())
    document = set_following(list_id, user_id, collection(LISTS), follow=False)
    invalidate_list_caches(document["_id"])
    return jsonify(serialize_list(document))


@bp.route("/<list_id>/movies", methods=["POST"])
def add_list_movie(list_id: str):
    """
    Handle POST requests appending a movie to a list.

    Args:
        list_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with the updated list.
    """
    body = request_payload()
    movie_id = require_object_id(body.get("movie_id"), "movie id")
    list_doc = find_by_id(collection(LISTS), list_id, "List")
    find_by_id(collection(MOVIES), movie_id, "Movie", {"_id": 1})
    document = add_movie_to_list(list_doc, movie_id, collection(LISTS))
    invalidate_list_caches(document["_id"])
    return jsonify(serialize_list(document, with_movies=True))


@bp.route("/<list_id>/movies/<movie_id>", methods=["DELETE"])
def remove_list_movie(list_id: str, movie_id: str):
    object_id = require_object_id(movie_id, "movie id")
    list_doc = find_by_id(collection(LISTS), list_id, "List")
    document = remove_movie_from_list(list_doc, object_id, collection(LISTS))
    invalidate_list_caches(document["_id"])
    return jsonify(serialize_list(document, with_movies=True))
