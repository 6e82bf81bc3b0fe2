import logging

from flask import Blueprint, current_app, jsonify, request
from pymongo import ASCENDING, DESCENDING

from ..api_movies.movies import invalidate_movie_caches
from ..api_movies.movies_functions import serialize_movie
from ..api_reviews.reviews_functions import MOVIE_SUMMARY_PROJECTION, USER_SUMMARY_PROJECTION, delete_review, strip_review
from ..api_users.users_functions import WISHLIST_PROJECTION, strip_private_fields
from ..common_functions import (
    build_page_payload,
    fetch_page,
    parse_limit_param,
    parse_page_params,
    populate,
    serialize_document,
)
from ..store import MOVIES, REVIEWS, USERS, collection
from .admin_functions import popular_movies, review_counts, trending_genres

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@bp.route("/popular-movies", methods=["GET"])
def get_popular_movies():
    """
    Handle GET requests for the most viewed movies.

    Returns:
        Response: Flask response with movies ordered by view count.
    """
    limit = parse_limit_param(
        request.args.get("limit"),
        current_app.config["RECOMMENDATION_LIMIT"],
        current_app.config["MAX_RECOMMENDATION_LIMIT"],
    )
    return jsonify([serialize_movie(doc) for doc in popular_movies(collection(MOVIES), limit)])


@bp.route("/user-activity", methods=["GET"])
def get_user_activity():
    """
    Handle GET requests listing users with their wishlists and review counts.

    Returns:
        Response: Flask response with the page payload.
    """
    page, page_size, skip = parse_page_params(request.args)
    users, total = fetch_page(
        collection(USERS), {}, [("created_at", ASCENDING), ("_id", ASCENDING)], skip, page_size
    )
    populate(users, "wishlist", collection(MOVIES), WISHLIST_PROJECTION)
    counts = review_counts([user["_id"] for user in users], collection(REVIEWS))

    results = []
    for user in users:
        entry = serialize_document(strip_private_fields(user))
        entry["review_count"] = counts.get(user["_id"], 0)
        results.append(entry)
    return jsonify(build_page_payload(results, page, page_size, total))


@bp.route("/trending-genres", methods=["GET"])
def get_trending_genres():
    return jsonify(trending_genres(collection(MOVIES)))


@bp.route("/most-searched-actors", methods=["GET"])
def get_most_searched_actors():
    return jsonify({"error": "Search tracking is not available"}), 501


@bp.route("/user-engagement", methods=["GET"])
def get_user_engagement_patterns():
    return jsonify({"error": "Engagement tracking is not available"}), 501


@bp.route("/moderate-reviews", methods=["GET"])
def moderate_reviews():
    """
    Handle GET requests listing reviews for moderation, newest first.

    Returns:
        Response: Flask response with the page payload.
    """
    page, page_size, skip = parse_page_params(request.args)
    reviews, total = fetch_page(
        collection(REVIEWS), {}, [("created_at", DESCENDING), ("_id", DESCENDING)], skip, page_size
    )
    populate(reviews, "user", collection(USERS), USER_SUMMARY_PROJECTION)
    populate(reviews, "movie", collection(MOVIES), MOVIE_SUMMARY_PROJECTION)
    results = [serialize_document(strip_review(review)) for review in reviews]
    return jsonify(build_page_payload(results, page, page_size, total))


@bp.route("/reviews/<review_id>", methods=["DELETE"])
def delete_review_as_admin(review_id: str):
    """
    Handle DELETE requests removing a review and re-rating its movie.

    Args:
        review_id (str): Identifier from the path segment.

    Returns:
        Response: Flask response with a confirmation payload.
    """
    review = delete_review(review_id, collection(MOVIES), collection(REVIEWS))
    invalidate_movie_caches(review.get("movie"))
    logger.info("Review %s deleted by moderation", review["_id"])
    return jsonify({"message": "Review deleted successfully"})
