import logging

from flask import Blueprint, jsonify, request
from pymongo import ReturnDocument
from pymongo.collation import Collation

from ..api_movies.movies_functions import MOVIE_DETAIL_CACHE_PREFIX, MOVIE_LIST_CACHE_PREFIX
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
    request_payload,
    require_object_id,
    serialize_document,
)
from ..errors import NotFound
from ..store import MOVIES, PEOPLE, collection, get_store
from .people_functions import (
    PEOPLE_LIST_CACHE_PREFIX,
    PERSON_DETAIL_CACHE_PREFIX,
    build_people_query,
    build_person_payload,
    delete_person_cascade,
    populate_filmography,
    resolve_people_sort,
)

logger = logging.getLogger(__name__)

bp = Blueprint("people", __name__, url_prefix="/api/people")


@bp.route("", methods=["GET"])
def get_people():
    """
    Handle GET requests for people listings.

    Returns:
        Response: Flask response with people data and metadata.
    """
    search = (request.args.get("q") or "").strip()
    role = (request.args.get("role") or "all").lower()
    sort_option, sort = resolve_people_sort(request.args.get("sort"))
    page, page_size, skip = parse_page_params(request.args)

    cache_key = build_cache_key("people", search, role, sort_option, page, page_size)
    cached = cache_get(cache_key)
    if cached:
        return jsonify(cached)

    collation = Collation(locale="en", strength=2)
    query = build_people_query(search, role)
    documents, total = fetch_page(collection(PEOPLE), query, sort, skip, page_size, collation=collation)

    payload = build_page_payload(
        [serialize_document(doc) for doc in documents],
        page,
        page_size,
        total,
        sort=sort_option,
        role=role,
        search=search,
    )
    cache_set(cache_key, payload)
    return jsonify(payload)


@bp.route("", methods=["POST"])
def add_person():
    """
    Handle POST requests that insert a person.

    Returns:
        Response: Flask response with the stored person and status code.
    """
    payload = build_person_payload(request_payload())
    people = collection(PEOPLE)
    result = people.insert_one(payload)
    document = people.find_one({"_id": result.inserted_id})
    invalidate_prefix(PEOPLE_LIST_CACHE_PREFIX)
    logger.info("Person added: %s", document.get("name"))
    return jsonify(serialize_document(document)), 201


@bp.route("/<person_id>", methods=["GET"])
def get_person(person_id: str):
    """
    Handle GET requests for a person with their filmography resolved.

    Args:
        person_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with person data.
    """
    object_id = require_object_id(person_id, "person id")
    cache_key = f"{PERSON_DETAIL_CACHE_PREFIX}{object_id}"
    cached = cache_get(cache_key)
    if cached:
        return jsonify(cached)

    document = find_by_id(collection(PEOPLE), object_id, "Person")
    populate_filmography(document, collection(MOVIES))
    serialized = serialize_document(document)
    cache_set(cache_key, serialized)
    return jsonify(serialized)


@bp.route("/<person_id>", methods=["PUT"])
def update_person(person_id: str):
    """
    Handle PUT requests that change person fields.

    Args:
        person_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with the updated person.
    """
    object_id = require_object_id(person_id, "person id")
    updates = build_person_payload(request_payload(), partial=True)
    document = collection(PEOPLE).find_one_and_update(
        {"_id": object_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not document:
        logger.warning("Attempt to update non-existent person: %s", person_id)
        raise NotFound("Person not found")

    invalidate_keys(f"{PERSON_DETAIL_CACHE_PREFIX}{object_id}")
    invalidate_prefix(PEOPLE_LIST_CACHE_PREFIX, MOVIE_DETAIL_CACHE_PREFIX, MOVIE_LIST_CACHE_PREFIX)
    logger.info("Person updated: %s", document.get("name"))
    return jsonify(serialize_document(document))


@bp.route("/<person_id>", methods=["DELETE"])
def delete_person(person_id: str):
    """
    Handle DELETE requests, detaching the person from movies and news.

    Args:
        person_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with a confirmation payload.
    """
    document = find_by_id(collection(PEOPLE), person_id, "Person")
    removed = delete_person_cascade(document["_id"], get_store().database)
    invalidate_keys(f"{PERSON_DETAIL_CACHE_PREFIX}{document['_id']}")
    invalidate_prefix(PEOPLE_LIST_CACHE_PREFIX, MOVIE_DETAIL_CACHE_PREFIX, MOVIE_LIST_CACHE_PREFIX)
    logger.info("Person deleted: %s", document.get("name"))
    return jsonify({"message": "Person deleted successfully", "removed": removed})
