import logging

from flask import Blueprint, jsonify
from pymongo import ReturnDocument

from ..api_lists.lists_functions import LIST_DETAIL_CACHE_PREFIX, PUBLIC_LISTS_CACHE_PREFIX
from ..api_movies.movies import invalidate_movie_caches
from ..api_movies.movies_functions import MOVIE_DETAIL_CACHE_PREFIX, serialize_movie
from ..api_news.news_functions import NEWS_DETAIL_CACHE_PREFIX, NEWS_LIST_CACHE_PREFIX
from ..common_functions import (
    find_by_id,
    invalidate_prefix,
    populate,
    request_payload,
    require_object_id,
    serialize_document,
)
from ..errors import NotFound, ValidationFailure
from ..store import MOVIES, USERS, collection, get_store
from .users_functions import (
    WISHLIST_PROJECTION,
    authenticate,
    build_profile_update,
    build_registration,
    delete_user_cascade,
    ensure_unique_identity,
    strip_private_fields,
)

logger = logging.getLogger(__name__)

bp = Blueprint("users", __name__, url_prefix="/api/users")


def serialize_user(user: dict, with_wishlist: bool = False):
    """
    Serialize a user without credentials.

    Args:
        user (dict): User document.
        with_wishlist (bool): Resolve wishlist ids into movie summaries.

    Returns:
        dict: JSON-ready user.
    """
    user = strip_private_fields(user)
    if with_wishlist:
        populate([user], "wishlist", collection(MOVIES), WISHLIST_PROJECTION)
        user["wishlist"] = [serialize_movie(movie) for movie in user["wishlist"]]
    return serialize_document(user)


@bp.route("/register", methods=["POST"])
def register_user():
    """
    Handle POST requests that create user accounts.

    Returns:
        Response: Flask response with the created user.
    """
    document = build_registration(request_payload())
    users = collection(USERS)
    ensure_unique_identity(document["username"], document["email"], users)
    result = users.insert_one(document)
    created = users.find_one({"_id": result.inserted_id})
    logger.info("User registered: %s", created.get("username"))
    return jsonify(serialize_user(created)), 201


@bp.route("/login", methods=["POST"])
def login_user():
    """
    Handle POST requests checking a username (or email) and password.

    Returns:
        Response: Flask response with the user record.
    """
    payload = request_payload()
    identifier = str(payload.get("username") or payload.get("email") or "").strip()
    password = payload.get("password") or ""
    user = authenticate(identifier, password, collection(USERS))
    logger.info("User logged in: %s", user.get("username"))
    return jsonify(serialize_user(user))


@bp.route("/<user_id>", methods=["GET"])
def get_user(user_id: str):
    user = find_by_id(collection(USERS), user_id, "User")
    return jsonify(serialize_user(user, with_wishlist=True))


@bp.route("/<user_id>/profile", methods=["PUT"])
def update_profile(user_id: str):
    """
    Handle PUT requests that change profile fields and notification preferences.

    Args:
        user_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with the updated user.
    """
    object_id = require_object_id(user_id, "user id")
    updates = build_profile_update(request_payload())
    user = collection(USERS).find_one_and_update(
        {"_id": object_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not user:
        logger.warning("Attempt to update non-existent user: %s", user_id)
        raise NotFound("User not found")
    return jsonify(serialize_user(user))


@bp.route("/<user_id>/wishlist", methods=["POST"])
def add_to_wishlist(user_id: str):
    """
    Handle POST requests adding a movie to the wishlist.

    Args:
        user_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with the user and populated wishlist.
    """
    user = find_by_id(collection(USERS), user_id, "User")
    movie_id = require_object_id(request_payload().get("movie_id"), "movie id")
    find_by_id(collection(MOVIES), movie_id, "Movie", {"_id": 1})
    if movie_id in (user.get("wishlist") or []):
        raise ValidationFailure("Movie already in wishlist")

    user = collection(USERS).find_one_and_update(
        {"_id": user["_id"]}, {"$addToSet": {"wishlist": movie_id}}, return_document=ReturnDocument.AFTER
    )
    return jsonify(serialize_user(user, with_wishlist=True))


@bp.route("/<user_id>/wishlist/<movie_id>", methods=["DELETE"])
def remove_from_wishlist(user_id: str, movie_id: str):
    user = find_by_id(collection(USERS), user_id, "User")
    object_id = require_object_id(movie_id, "movie id")
    if object_id not in (user.get("wishlist") or []):
        raise NotFound("Movie not in wishlist")

    user = collection(USERS).find_one_and_update(
        {"_id": user["_id"]}, {"$pull": {"wishlist": object_id}}, return_document=ReturnDocument.AFTER
    )
    return jsonify(serialize_user(user, with_wishlist=True))


@bp.route("/<user_id>", methods=["DELETE"])
def delete_user(user_id: str):
    """
    Handle DELETE requests that remove an account and its content.

    Args:
        user_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with a confirmation payload.
    """
    user = find_by_id(collection(USERS), user_id, "User", {"username": 1})
    removed = delete_user_cascade(user["_id"], get_store().database)
    invalidate_movie_caches()
    invalidate_prefix(
        MOVIE_DETAIL_CACHE_PREFIX,
        LIST_DETAIL_CACHE_PREFIX,
        PUBLIC_LISTS_CACHE_PREFIX,
        NEWS_DETAIL_CACHE_PREFIX,
        NEWS_LIST_CACHE_PREFIX,
    )
    logger.info("User deleted: %s", user.get("username"))
    return jsonify({"message": "User is successfully deleted", "removed": removed})
