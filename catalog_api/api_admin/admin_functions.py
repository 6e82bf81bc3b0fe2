import logging

from pymongo import ASCENDING, DESCENDING

logger = logging.getLogger(__name__)

POPULAR_SORT = [("view_count", DESCENDING), ("_id", ASCENDING)]
TRENDING_GENRES_SIZE = 5


def popular_movies(movies_collection, limit: int = 10):
    return list(movies_collection.find({}).sort(POPULAR_SORT).limit(limit))


def build_trending_genres_pipeline(size: int):
    """
    Create an aggregation pipeline counting movies per genre.

    Genres tie-break alphabetically.

    Args:
        size (int): Number of genres to keep.

    Returns:
        list[dict]: Pipeline definition for MongoDB.
    """
    return [
        {"$unwind": "$genres"},
        {"$group": {"_id": "$genres", "count": {"$sum": 1}}},
        {"$sort": {"count": DESCENDING, "_id": ASCENDING}},
        {"$limit": size},
    ]


def trending_genres(movies_collection, size: int = TRENDING_GENRES_SIZE):
    """
    Count movies per genre and keep the most frequent ones.

    Args:
        movies_collection (Collection): Movies collection handle.
        size (int): Number of genres to return.

    Returns:
        list[dict]: ``{"genre", "count"}`` entries, most frequent first.
    """
    cursor = movies_collection.aggregate(build_trending_genres_pipeline(size))
    return [{"genre": entry["_id"], "count": entry["count"]} for entry in cursor]


def build_review_counts_pipeline(user_ids: list):
    return [
        {"$match": {"user": {"$in": user_ids}}},
        {"$group": {"_id": "$user", "count": {"$sum": 1}}},
    ]


def review_counts(user_ids: list, reviews_collection):
    """
    Count the reviews written by each user.

    Args:
        user_ids (list[ObjectId]): Users to count for.
        reviews_collection (Collection): Reviews collection handle.

    Returns:
        dict: Review count keyed by user id; users without reviews map to 0.
    """
    counts = {user_id: 0 for user_id in user_ids}
    if not user_ids:
        return counts
    for entry in reviews_collection.aggregate(build_review_counts_pipeline(user_ids)):
        counts[entry["_id"]] = entry["count"]
    return counts
