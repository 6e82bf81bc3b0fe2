import logging
from threading import Lock

from pymongo import DESCENDING, ReturnDocument

from ..common_functions import clean_string, parse_object_id, safe_int, utc_now
from ..errors import NotFound, ValidationFailure

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
MIN_CONTENT_LENGTH = 10
MAX_CONTENT_LENGTH = 5000
HIGHLIGHT_SIZE = 3

USER_SUMMARY_PROJECTION = {"username": 1}
MOVIE_SUMMARY_PROJECTION = {"title": 1, "cover_photo": 1, "average_rating": 1}


class RatingLocks:
    """
    Registry of one lock per movie id.

    Aggregations of the same movie run one at a time inside this process, so
    a rating written from a stale review scan cannot overwrite a newer one.
    """

    def __init__(self):
        self._guard = Lock()
        self._locks = {}

    def for_movie(self, movie_id):
        key = str(movie_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    def discard(self, movie_id):
        with self._guard:
            self._locks.pop(str(movie_id), None)


rating_locks = RatingLocks()


def compute_mean_rating(reviews: list[dict]):
    """
    Average the ``rating`` field of review documents.

    Args:
        reviews (list[dict]): Review documents of one movie.

    Returns:
        tuple[float, int]: Mean rating (0.0 without reviews) and review count.
    """
    ratings = [review["rating"] for review in reviews if review.get("rating") is not None]
    if not ratings:
        return 0.0, 0
    return sum(ratings) / len(ratings), len(ratings)


def recompute_movie_rating(movie_id, movies_collection, reviews_collection, locks: RatingLocks = rating_locks):
    """
    Re-derive and persist a movie's mean rating from all of its reviews.

    Args:
        movie_id (ObjectId | str): Movie identifier.
        movies_collection (Collection): Movies collection handle.
        reviews_collection (Collection): Reviews collection handle.
        locks (RatingLocks): Per-movie lock registry.

    Returns:
        float: Stored mean rating.
    """
    object_id = parse_object_id(movie_id)
    if object_id is None:
        raise NotFound("Movie not found")

    with locks.for_movie(object_id):
        reviews = list(reviews_collection.find({"movie": object_id}, {"rating": 1}))
        average, count = compute_mean_rating(reviews)
        result = movies_collection.update_one(
            {"_id": object_id},
            {"$set": {"average_rating": average, "rating_count": count}},
        )
    if result.matched_count == 0:
        logger.warning("Rating recompute for non-existent movie: %s", movie_id)
        raise NotFound("Movie not found")

    logger.debug("Movie %s rated %.3f over %d reviews", object_id, average, count)
    return average


def build_review_payload(data: dict | None):
    """
    Validate the rating and content of a submitted review.

    Args:
        data (dict | None): Submitted JSON body.

    Returns:
        dict: ``rating`` and ``content`` ready for storage.
    """
    data = data or {}
    raw_rating = data.get("rating")
    if isinstance(raw_rating, bool) or raw_rating in (None, ""):
        raise ValidationFailure("Rating is required")
    try:
        rating = float(raw_rating)
    except (TypeError, ValueError):
        raise ValidationFailure(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    if not rating.is_integer() or rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationFailure(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

    content = clean_string(data, "content", MAX_CONTENT_LENGTH, required=True, label="Review content")
    if len(content) < MIN_CONTENT_LENGTH:
        raise ValidationFailure(f"Review must be at least {MIN_CONTENT_LENGTH} characters long")
    return {"rating": int(rating), "content": content}


def upsert_review(user_id, movie_id, payload: dict, movies_collection, reviews_collection, locks: RatingLocks = rating_locks):
    """
    Create or replace the single review a user holds for a movie.

    The movie's mean rating is re-aggregated afterwards.

    Args:
        user_id (ObjectId): Reviewing user.
        movie_id (ObjectId): Reviewed movie.
        payload (dict): Validated ``rating`` and ``content``.
        movies_collection (Collection): Movies collection handle.
        reviews_collection (Collection): Reviews collection handle.
        locks (RatingLocks): Per-movie lock registry.

    Returns:
        tuple[dict, bool, float]: Stored review, whether it was created, new mean rating.
    """
    now = utc_now()
    previous = reviews_collection.find_one_and_update(
        {"user": user_id, "movie": movie_id},
        {
            "$set": {"rating": payload["rating"], "content": payload["content"], "updated_at": now},
            "$setOnInsert": {"likes": 0, "liked_by": [], "is_highlighted": False, "created_at": now},
        },
        upsert=True,
        return_document=ReturnDocument.BEFORE,
    )
    review = reviews_collection.find_one({"user": user_id, "movie": movie_id})
    average = recompute_movie_rating(movie_id, movies_collection, reviews_collection, locks)
    return review, previous is None, average


def toggle_review_like(review_id, user_id, reviews_collection):
    """
    Like a review, or take the like back when the user already liked it.

    Args:
        review_id (ObjectId | str): Review identifier.
        user_id (ObjectId): Acting user.
        reviews_collection (Collection): Reviews collection handle.

    Returns:
        dict: Updated review document.
    """
    object_id = parse_object_id(review_id)
    review = reviews_collection.find_one({"_id": object_id}) if object_id else None
    if not review:
        raise NotFound("Review not found")

    liked_by = list(review.get("liked_by") or [])
    if user_id in liked_by:
        liked_by = [entry for entry in liked_by if entry != user_id]
    else:
        liked_by.append(user_id)

    return reviews_collection.find_one_and_update(
        {"_id": object_id},
        {"$set": {"liked_by": liked_by, "likes": len(liked_by)}},
        return_document=ReturnDocument.AFTER,
    )


def delete_review(review_id, movies_collection, reviews_collection, locks: RatingLocks = rating_locks):
    """
    Delete a review and re-aggregate the rating of its movie.

    Args:
        review_id (ObjectId | str): Review identifier.
        movies_collection (Collection): Movies collection handle.
        reviews_collection (Collection): Reviews collection handle.
        locks (RatingLocks): Per-movie lock registry.

    Returns:
        dict: The deleted review document.
    """
    object_id = parse_object_id(review_id)
    review = reviews_collection.find_one({"_id": object_id}) if object_id else None
    if not review:
        raise NotFound("Review not found")

    reviews_collection.delete_one({"_id": object_id})
    try:
        recompute_movie_rating(review["movie"], movies_collection, reviews_collection, locks)
    except NotFound:
        logger.warning("Review %s pointed at a missing movie %s", object_id, review.get("movie"))
    return review


def review_highlights(movie_id, reviews_collection):
    """
    Pick the best rated and the most liked reviews of a movie.

    Args:
        movie_id (ObjectId): Movie identifier.
        reviews_collection (Collection): Reviews collection handle.

    Returns:
        dict[str, list[dict]]: ``top_rated`` and ``most_discussed`` reviews.
    """
    query = {"movie": movie_id}
    top_rated = list(
        reviews_collection.find(query).sort([("rating", DESCENDING), ("likes", DESCENDING)]).limit(HIGHLIGHT_SIZE)
    )
    most_discussed = list(
        reviews_collection.find(query).sort([("likes", DESCENDING), ("rating", DESCENDING)]).limit(HIGHLIGHT_SIZE)
    )
    return {"top_rated": top_rated, "most_discussed": most_discussed}


def strip_review(document: dict):
    """
    Drop the liker list from a review before it leaves the API.

    Args:
        document (dict): Review document.

    Returns:
        dict: Copy without ``liked_by``; ``likes`` keeps the count.
    """
    payload = dict(document)
    payload.pop("liked_by", None)
    payload["likes"] = safe_int(payload.get("likes"), 0)
    return payload
