import logging

from flask import Blueprint, jsonify, request
from pymongo import DESCENDING, ReturnDocument

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
from ..store import MOVIES, NEWS, PEOPLE, USERS, collection
from .news_functions import (
    NEWS_DETAIL_CACHE_PREFIX,
    NEWS_LIST_CACHE_PREFIX,
    build_news_payload,
    populate_news,
)

logger = logging.getLogger(__name__)

bp = Blueprint("news", __name__, url_prefix="/api/news")


def serialize_news(documents: list[dict]):
    populate_news(documents, collection(USERS), collection(MOVIES), collection(PEOPLE))
    return [serialize_document(doc) for doc in documents]


@bp.route("", methods=["GET"])
def get_all_news():
    """
    Handle GET requests for news articles, newest first.

    Returns:
        Response: Flask response with the page payload.
    """
    page, page_size, skip = parse_page_params(request.args)
    cache_key = build_cache_key("news", page, page_size)
    cached = cache_get(cache_key)
    if cached:
        return jsonify(cached)

    documents, total = fetch_page(
        collection(NEWS), {}, [("created_at", DESCENDING), ("_id", DESCENDING)], skip, page_size
    )
    payload = build_page_payload(serialize_news(documents), page, page_size, total)
    cache_set(cache_key, payload)
    return jsonify(payload)


@bp.route("", methods=["POST"])
def add_news():
    """
    Handle POST requests that publish a news article.

    Returns:
        Response: Flask response with the stored article.
    """
    payload = build_news_payload(request_payload())
    find_by_id(collection(USERS), payload["author"], "Author", {"_id": 1})

    news = collection(NEWS)
    result = news.insert_one(payload)
    document = news.find_one({"_id": result.inserted_id})
    invalidate_prefix(NEWS_LIST_CACHE_PREFIX)
    logger.info("New article added: %s", document.get("title"))
    return jsonify(serialize_document(document)), 201


@bp.route("/<news_id>", methods=["GET"])
def get_news(news_id: str):
    object_id = require_object_id(news_id, "news id")
    cache_key = f"{NEWS_DETAIL_CACHE_PREFIX}{object_id}"
    cached = cache_get(cache_key)
    if cached:
        return jsonify(cached)

    document = find_by_id(collection(NEWS), object_id, "News article")
    serialized = serialize_news([document])[0]
    cache_set(cache_key, serialized)
    return jsonify(serialized)


@bp.route("/<news_id>", methods=["PUT"])
def update_news(news_id: str):
    """
    Handle PUT requests that change an article.

    Args:
        news_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with the updated article.
    """
    object_id = require_object_id(news_id, "news id")
    updates = build_news_payload(request_payload(), partial=True)
    if "author" in updates:
        find_by_id(collection(USERS), updates["author"], "Author", {"_id": 1})

    document = collection(NEWS).find_one_and_update(
        {"_id": object_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not document:
        logger.warning("Attempt to update non-existent news article: %s", news_id)
        raise NotFound("News article not found")

    invalidate_keys(f"{NEWS_DETAIL_CACHE_PREFIX}{object_id}")
    invalidate_prefix(NEWS_LIST_CACHE_PREFIX)
    logger.info("News article updated: %s", document.get("title"))
    return jsonify(serialize_document(document))


@bp.route("/<news_id>", methods=["DELETE"])
def delete_news(news_id: str):
    document = find_by_id(collection(NEWS), news_id, "News article")
    collection(NEWS).delete_one({"_id": document["_id"]})
    invalidate_keys(f"{NEWS_DETAIL_CACHE_PREFIX}{document['_id']}")
    invalidate_prefix(NEWS_LIST_CACHE_PREFIX)
    logger.info("News article deleted: %s", document.get("title"))
    return jsonify({"message": "News article deleted successfully"})
