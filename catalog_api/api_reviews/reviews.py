import logging

from flask import Blueprint, jsonify, request
from pymongo import DESCENDING

from ..api_movies.movies import invalidate_movie_caches
from ..common_functions import (
    acting_user_id,
    build_page_payload,
    fetch_page,
    find_by_id,
    parse_page_params,
    populate,
    request_payload,
    serialize_document,
)
from ..store import MOVIES, REVIEWS, USERS, collection
from .reviews_functions import (
    USER_SUMMARY_PROJECTION,
    build_review_payload,
    review_highlights,
    strip_review,
    toggle_review_like,
    upsert_review,
)

logger = logging.getLogger(__name__)

bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")


def serialize_reviews(documents: list[dict]):
    populate(documents, "user", collection(USERS), USER_SUMMARY_PROJECTION)
    return [serialize_document(strip_review(doc)) for doc in documents]


@bp.route("/<movie_id>", methods=["POST"])
def add_or_update_review(movie_id: str):
    """
    Handle POST requests that create or replace the acting user's review.

    Args:
        movie_id (str): Reviewed movie from the path segment.

    Returns:
        Response: Flask response with the review; 201 when created.
    """
    body = request_payload()
    user_id = acting_user_id(body)
    payload = build_review_payload(body)

    movie = find_by_id(collection(MOVIES), movie_id, "Movie")
    find_by_id(collection(USERS), user_id, "User", {"_id": 1})

    review, created, average = upsert_review(
        user_id, movie["_id"], payload, collection(MOVIES), collection(REVIEWS)
    )
    invalidate_movie_caches(movie["_id"])
    logger.info("Review %s for movie %s, average now %.2f", "added" if created else "updated", movie["_id"], average)

    serialized = serialize_document(strip_review(review))
    serialized["movie_average_rating"] = average
    return jsonify(serialized), 201 if created else 200


@bp.route("/movie/<movie_id>", methods=["GET"])
def get_movie_reviews(movie_id: str):
    """
    Handle GET requests for a movie's reviews, newest first.

    Args:
        movie_id (str): Movie identifier from the path segment.

    Returns:
        Response: Flask response with the page payload.
    """
    movie = find_by_id(collection(MOVIES), movie_id, "Movie", {"_id": 1})
    page, page_size, skip = parse_page_params(request.args)
    documents, total = fetch_page(
        collection(REVIEWS),
        {"movie": movie["_id"]},
        [("created_at", DESCENDING), ("_id", DESCENDING)],
        skip,
        page_size,
    )
    return jsonify(build_page_payload(serialize_reviews(documents), page, page_size, total))


@bp.route("/highlights/<movie_id>", methods=["GET"])
def get_review_highlights(movie_id: str):
    """
    Handle GET requests for a movie's top rated and most liked reviews.

    Args:
        movie_id (str): Movie identifier from the path segment.

    Returns:
        Response: Flask response with both highlight lists.
    """
    movie = find_by_id(collection(MOVIES), movie_id, "Movie", {"_id": 1})
    highlights = review_highlights(movie["_id"], collection(REVIEWS))
    return jsonify({key: serialize_reviews(items) for key, items in highlights.items()})


@bp.route("/like/<review_id>", methods=["POST"])
def like_review(review_id: str):
    """
    Handle POST requests toggling the acting user's like on a review.

    Args:
        review_id (str): Review identifier from the path segment.

    Returns:
        Response: Flask response with the updated review.
    """
    user_id = acting_user_id(request_payload())
    review = toggle_review_like(review_id, user_id, collection(REVIEWS))
    return jsonify(serialize_document(strip_review(review)))
