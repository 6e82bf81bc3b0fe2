import logging

from pymongo import ReturnDocument

from ..common_functions import (
    clean_string,
    parse_boolean,
    parse_object_id_list,
    require_object_id,
    utc_now,
)
from ..errors import NotFound, ValidationFailure

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500

LIST_DETAIL_CACHE_PREFIX = "list_detail:"
PUBLIC_LISTS_CACHE_PREFIX = "lists:"
USER_SUMMARY_PROJECTION = {"username": 1, "profile.avatar": 1}
MOVIE_SUMMARY_PROJECTION = {"title": 1, "cover_photo": 1, "average_rating": 1, "release_date": 1}


def build_list_payload(data: dict | None, creator_id=None, partial: bool = False):
    """
    Validate a submitted list body.

    Movie ids keep their order and lose duplicates.

    Args:
        data (dict | None): Submitted JSON body.
        creator_id (ObjectId | None): Creating user, required on create.
        partial (bool): True for updates.

    Returns:
        dict: Fields to store.
    """
    data = data or {}
    payload = {}
    required = not partial

    if required or "name" in data:
        payload["name"] = clean_string(data, "name", MAX_NAME_LENGTH, required=True, label="List name")
    if "description" in data:
        payload["description"] = clean_string(data, "description", MAX_DESCRIPTION_LENGTH) or ""
    elif required:
        payload["description"] = ""
    if "is_public" in data:
        payload["is_public"] = parse_boolean(data.get("is_public"), True)
    elif required:
        payload["is_public"] = True
    if "movies" in data:
        payload["movies"] = parse_object_id_list(data.get("movies"), "movie id")
    elif required:
        payload["movies"] = []

    if partial and not payload:
        raise ValidationFailure("No updatable fields provided")

    now = utc_now()
    payload["updated_at"] = now
    if required:
        payload["creator"] = creator_id
        payload["followers"] = []
        payload["created_at"] = now
    return payload


def check_movies_exist(movie_ids: list, movies_collection):
    """
    Ensure every movie id points at a stored movie.

    Args:
        movie_ids (list[ObjectId]): Movie identifiers.
        movies_collection (Collection): Movies collection handle.
    """
    if not movie_ids:
        return
    found = {doc["_id"] for doc in movies_collection.find({"_id": {"$in": movie_ids}}, {"_id": 1})}
    missing = [str(movie_id) for movie_id in movie_ids if movie_id not in found]
    if missing:
        raise NotFound(f"Movies not found: {', '.join(missing)}")


def set_following(list_id, user_id, lists_collection, follow: bool):
    """
    Add or remove a user from a list's followers.

    Args:
        list_id (ObjectId | str): List identifier.
        user_id (ObjectId): Following user.
        lists_collection (Collection): Lists collection handle.
        follow (bool): True to follow, False to unfollow.

    Returns:
        dict: Updated list document.
    """
    object_id = require_object_id(list_id, "list id")
    operation = {"$addToSet": {"followers": user_id}} if follow else {"$pull": {"followers": user_id}}
    operation["$set"] = {"updated_at": utc_now()}
    document = lists_collection.find_one_and_update(
        {"_id": object_id}, operation, return_document=ReturnDocument.AFTER
    )
    if not document:
        raise NotFound("List not found")
    return document


def add_movie_to_list(list_doc: dict, movie_id, lists_collection):
    """
    Append a movie to a list unless it is already there.

    Args:
        list_doc (dict): Current list document.
        movie_id (ObjectId): Movie to append.
        lists_collection (Collection): Lists collection handle.

    Returns:
        dict: Updated list document.
    """
    if movie_id in (list_doc.get("movies") or []):
        raise ValidationFailure("Movie already in list")
    return lists_collection.find_one_and_update(
        {"_id": list_doc["_id"]},
        {"$addToSet": {"movies": movie_id}, "$set": {"updated_at": utc_now()}},
        return_document=ReturnDocument.AFTER,
    )


def remove_movie_from_list(list_doc: dict, movie_id, lists_collection):
    if movie_id not in (list_doc.get("movies") or []):
        raise NotFound("Movie not in list")
    return lists_collection.find_one_and_update(
        {"_id": list_doc["_id"]},
        {"$pull": {"movies": movie_id}, "$set": {"updated_at": utc_now()}},
        return_document=ReturnDocument.AFTER,
    )
