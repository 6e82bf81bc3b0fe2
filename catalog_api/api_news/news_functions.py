import logging

from ..common_functions import (
    clean_string,
    clean_string_list,
    parse_object_id,
    parse_object_id_list,
    populate,
    utc_now,
)
from ..errors import ValidationFailure

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 10000
MAX_TAG_LENGTH = 50

NEWS_DETAIL_CACHE_PREFIX = "news_detail:"
NEWS_LIST_CACHE_PREFIX = "news:"
AUTHOR_PROJECTION = {"username": 1, "profile.avatar": 1}
MOVIE_SUMMARY_PROJECTION = {"title": 1, "cover_photo": 1, "release_date": 1}
PERSON_SUMMARY_PROJECTION = {"name": 1, "photo": 1}


def build_news_payload(data: dict | None, partial: bool = False):
    """
    Validate a submitted news article.

    Args:
        data (dict | None): Submitted JSON body.
        partial (bool): True for updates, where every field is optional.

    Returns:
        dict: Fields to store.
    """
    data = data or {}
    payload = {}
    required = not partial

    if required or "title" in data:
        payload["title"] = clean_string(data, "title", MAX_TITLE_LENGTH, required=True, label="Title")
    if required or "content" in data:
        payload["content"] = clean_string(data, "content", MAX_CONTENT_LENGTH, required=True, label="Content")
    if required or "author" in data:
        author = parse_object_id(data.get("author"))
        if author is None:
            raise ValidationFailure("A valid author id is required")
        payload["author"] = author

    for field, label in (("related_movies", "movie id"), ("related_people", "person id")):
        if field in data:
            payload[field] = parse_object_id_list(data.get(field), label)
        elif required:
            payload[field] = []

    if "tags" in data:
        payload["tags"] = clean_string_list(data, "tags", MAX_TAG_LENGTH)
    elif required:
        payload["tags"] = []

    if partial and not payload:
        raise ValidationFailure("No updatable fields provided")

    now = utc_now()
    payload["updated_at"] = now
    if required:
        payload["created_at"] = now
    return payload


def populate_news(documents: list[dict], users_collection, movies_collection, people_collection):
    """
    Resolve author, related movies and related people of news articles.

    Args:
        documents (list[dict]): Articles, enriched in place.
        users_collection (Collection): Users collection handle.
        movies_collection (Collection): Movies collection handle.
        people_collection (Collection): People collection handle.

    Returns:
        list[dict]: The same documents.
    """
    populate(documents, "author", users_collection, AUTHOR_PROJECTION)
    populate(documents, "related_movies", movies_collection, MOVIE_SUMMARY_PROJECTION)
    populate(documents, "related_people", people_collection, PERSON_SUMMARY_PROJECTION)
    return documents
