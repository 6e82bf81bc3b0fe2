import logging
from datetime import datetime

from pymongo import ASCENDING, DESCENDING

from ..common_functions import find_by_id, parse_object_id
from ..errors import ValidationFailure

logger = logging.getLogger(__name__)

DEFAULT_RECOMMENDATION_LIMIT = 10
DEFAULT_SIMILAR_LIMIT = 5

TOP_RATED_SORT = [("average_rating", DESCENDING), ("_id", ASCENDING)]
TRENDING_SORT = [("view_count", DESCENDING), ("average_rating", DESCENDING), ("_id", ASCENDING)]


def _check_limit(limit):
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationFailure("limit must be a positive integer")
    return limit


def build_similarity_query(source: dict):
    """
    Build the filter matching movies related to a source movie.

    A candidate is related when it shares a genre or the director.

    Args:
        source (dict): Source movie document.

    Returns:
        dict | None: MongoDB filter, or None when nothing can relate to the source.
    """
    conditions = []
    genres = [genre for genre in source.get("genres") or [] if genre]
    if genres:
        conditions.append({"genres": {"$in": genres}})
    if source.get("director") is not None:
        conditions.append({"director": source["director"]})
    if not conditions:
        return None
    return {"_id": {"$ne": source["_id"]}, "$or": conditions}


def find_similar_movies(movie_id, movies_collection, limit: int = DEFAULT_SIMILAR_LIMIT):
    """
    Find movies sharing a genre or the director with the given movie.

    Args:
        movie_id (ObjectId | str): Source movie identifier.
        movies_collection (Collection): Movies collection handle.
        limit (int): Maximum number of results.

    Returns:
        list[dict]: Related movies by descending mean rating; empty when the id does not resolve.
    """
    limit = _check_limit(limit)
    object_id = parse_object_id(movie_id)
    source = movies_collection.find_one({"_id": object_id}) if object_id else None
    if not source:
        logger.debug("Similar movies requested for unknown id %s", movie_id)
        return []

    query = build_similarity_query(source)
    if query is None:
        return []
    return list(movies_collection.find(query).sort(TOP_RATED_SORT).limit(limit))


def favorite_genres(user: dict):
    """
    Read the favourite genre names from a user profile.

    Args:
        user (dict): User document.

    Returns:
        list[str]: Non-empty genre names in profile order.
    """
    profile = user.get("profile") or {}
    genres = []
    for genre in profile.get("favorite_genres") or []:
        text = str(genre).strip()
        if text and text not in genres:
            genres.append(text)
    return genres


def recommend_by_genres(genres: list[str], movies_collection, limit: int = DEFAULT_RECOMMENDATION_LIMIT):
    """
    Select the best rated movies carrying any of the given genres.

    Args:
        genres (list[str]): Genre names to match.
        movies_collection (Collection): Movies collection handle.
        limit (int): Maximum number of results.

    Returns:
        list[dict]: Matching movies; empty when no genre is given.
    """
    limit = _check_limit(limit)
    if not genres:
        return []
    return list(movies_collection.find({"genres": {"$in": list(genres)}}).sort(TOP_RATED_SORT).limit(limit))


def personalized_recommendations(user_id, users_collection, movies_collection, limit: int = DEFAULT_RECOMMENDATION_LIMIT):
    """
    Recommend movies from the genres a user marked as favourite.

    Args:
        user_id (ObjectId | str): Requesting user.
        users_collection (Collection): Users collection handle.
        movies_collection (Collection): Movies collection handle.
        limit (int): Maximum number of results.

    Returns:
        list[dict]: Movies ordered by descending mean rating.
    """
    user = find_by_id(users_collection, user_id, "User", {"profile": 1})
    return recommend_by_genres(favorite_genres(user), movies_collection, limit)


def trending_movies(movies_collection, limit: int = DEFAULT_RECOMMENDATION_LIMIT):
    """Most viewed movies, mean rating breaking ties."""
    limit = _check_limit(limit)
    return list(movies_collection.find({}).sort(TRENDING_SORT).limit(limit))


def top_rated_movies(movies_collection, limit: int = DEFAULT_RECOMMENDATION_LIMIT):
    limit = _check_limit(limit)
    return list(movies_collection.find({}).sort(TOP_RATED_SORT).limit(limit))


def month_bounds(reference: datetime):
    """
    Return the first instant of the reference month and of the next one.

    Args:
        reference (datetime): Any moment inside the month.

    Returns:
        tuple[datetime, datetime]: Inclusive start and exclusive end.
    """
    start = datetime(reference.year, reference.month, 1)
    if reference.month == 12:
        end = datetime(reference.year + 1, 1, 1)
    else:
        end = datetime(reference.year, reference.month + 1, 1)
    return start, end


def top_movies_of_month(movies_collection, reference: datetime, limit: int = DEFAULT_RECOMMENDATION_LIMIT):
    """
    Best rated movies released in the month containing ``reference``.

    Args:
        movies_collection (Collection): Movies collection handle.
        reference (datetime): Moment selecting the month.
        limit (int): Maximum number of results.

    Returns:
        list[dict]: Movies ordered by descending mean rating.
    """
    limit = _check_limit(limit)
    start, end = month_bounds(reference)
    query = {"release_date": {"$gte": start, "$lt": end}}
    return list(movies_collection.find(query).sort(TOP_RATED_SORT).limit(limit))
