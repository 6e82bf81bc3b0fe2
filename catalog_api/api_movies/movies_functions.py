import logging
from urllib.parse import quote_plus

from pymongo import ASCENDING

from ..api_reviews.reviews_functions import rating_locks
from ..common_functions import (
    clean_string,
    clean_string_list,
    parse_datetime,
    parse_object_id_list,
    populate,
    require_object_id,
    safe_int,
    serialize_document,
    utc_now,
)
from ..errors import ValidationFailure

logger = logging.getLogger(__name__)

COVER_PLACEHOLDER_TEMPLATE = (
    "https://ui-avatars.com/api/"
    "?name={name}&background=023047&color=ffffff&size=512&length=2"
)

RELEASE_STATUSES = {"announced", "coming_soon", "released"}
AGE_RATINGS = {"G", "PG", "PG-13", "R", "NC-17"}
FIRST_FILM_YEAR = 1888

MOVIE_LIST_CACHE_PREFIX = "movies:"
MOVIE_DETAIL_CACHE_PREFIX = "movie_detail:"
RANKING_CACHE_PREFIX = "rankings:"

PERSON_SUMMARY_PROJECTION = {"name": 1, "photo": 1, "roles": 1}
MOVIE_LIST_SORT = [("created_at", ASCENDING), ("_id", ASCENDING)]


def build_cover_placeholder(title: str | None = None):
    """
    Build a fallback cover image URL from the movie title.

    Args:
        title (str | None): Title to encode into the placeholder.

    Returns:
        str: URL of the generated placeholder image.
    """
    base_title = (title or "").strip() or "Movie"
    encoded = quote_plus(base_title)
    return COVER_PLACEHOLDER_TEMPLATE.format(name=encoded)


def serialize_movie(doc: dict | None):
    """
    Convert a movie document into an API-friendly dictionary.

    Args:
        doc (dict | None): MongoDB document.

    Returns:
        dict: Serializable representation with a usable ``cover_photo``.
    """
    if not doc:
        return {}

    serialized = serialize_document(doc)
    cover_value = serialized.get("cover_photo")
    if isinstance(cover_value, str) and cover_value.strip().lower() not in {"", "none", "n/a", "null"}:
        serialized["cover_photo"] = cover_value.strip()
    else:
        serialized["cover_photo"] = build_cover_placeholder(serialized.get("title"))
    return serialized


def _parse_runtime(value):
    runtime = safe_int(value, 0)
    if runtime < 1:
        raise ValidationFailure("Runtime must be a positive integer")
    return runtime


def _parse_awards(value):
    if not isinstance(value, list):
        raise ValidationFailure("awards must be an array")
    awards = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValidationFailure("awards entries must be objects")
        name = clean_string(entry, "name", 200, required=True, label="Award name")
        category = clean_string(entry, "category", 200, required=True, label="Award category")
        year = safe_int(entry.get("year"), 0)
        if year < FIRST_FILM_YEAR:
            raise ValidationFailure(f"Award year must be {FIRST_FILM_YEAR} or later")
        awards.append({"name": name, "category": category, "year": year})
    return awards


def _parse_soundtrack(value):
    if not isinstance(value, list):
        raise ValidationFailure("soundtrack must be an array")
    tracks = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValidationFailure("soundtrack entries must be objects")
        tracks.append({
            "title": clean_string(entry, "title", 200, required=True, label="Song title"),
            "artist": clean_string(entry, "artist", 200, required=True, label="Artist name"),
        })
    return tracks


def _parse_box_office(value):
    if not isinstance(value, dict):
        raise ValidationFailure("box_office must be an object")
    box_office = {}
    for key in ("opening_weekend", "total_earnings", "international_revenue"):
        if value.get(key) is None:
            continue
        try:
            box_office[key] = float(value[key])
        except (TypeError, ValueError):
            raise ValidationFailure(f"box_office.{key} must be a number")
    return box_office


def build_movie_payload(data: dict | None, partial: bool = False):
    """
    Validate a submitted movie body and prepare it for persistence.

    Derived fields (``average_rating``, ``rating_count``, ``view_count``)
    are never taken from the client.

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
        payload["title"] = clean_string(data, "title", 200, required=True, label="Title")

    if required or "genres" in data:
        genres = clean_string_list(data, "genres")
        if not genres:
            raise ValidationFailure("At least one genre is required")
        payload["genres"] = genres

    if required or "director" in data:
        payload["director"] = require_object_id(data.get("director"), "director ID")

    if "cast" in data:
        payload["cast"] = parse_object_id_list(data.get("cast"), "cast ID")
    elif required:
        payload["cast"] = []

    if required or "release_date" in data:
        payload["release_date"] = parse_datetime(data.get("release_date"), "release date")

    if required or "runtime" in data:
        payload["runtime"] = _parse_runtime(data.get("runtime"))

    if required or "synopsis" in data:
        payload["synopsis"] = clean_string(data, "synopsis", 2000, required=True, label="Synopsis")

    if required or "age_rating" in data:
        age_rating = clean_string(data, "age_rating", required=True, label="Age rating")
        if age_rating not in AGE_RATINGS:
            raise ValidationFailure("Invalid age rating")
        payload["age_rating"] = age_rating

    if "release_status" in data:
        status = (clean_string(data, "release_status") or "announced").lower()
        if status not in RELEASE_STATUSES:
            raise ValidationFailure("Invalid release status")
        payload["release_status"] = status
    elif required:
        payload["release_status"] = "announced"

    if "cover_photo" in data:
        payload["cover_photo"] = clean_string(data, "cover_photo")

    if "trailer" in data:
        trailer = data.get("trailer") or {}
        if not isinstance(trailer, dict):
            raise ValidationFailure("trailer must be an object")
        payload["trailer"] = {
            "url": clean_string(trailer, "url"),
            "release_date": parse_datetime(trailer["release_date"], "trailer release date") if trailer.get("release_date") else None,
        }

    for key in ("trivia", "goofs"):
        if key in data:
            payload[key] = clean_string_list(data, key, 500)

    if "soundtrack" in data:
        payload["soundtrack"] = _parse_soundtrack(data.get("soundtrack"))
    if "awards" in data:
        payload["awards"] = _parse_awards(data.get("awards"))
    if "box_office" in data:
        payload["box_office"] = _parse_box_office(data.get("box_office"))
    if "parental_guidance" in data:
        payload["parental_guidance"] = clean_string(data, "parental_guidance", 1000)

    if partial and not payload:
        raise ValidationFailure("No updatable fields provided")

    now = utc_now()
    payload["updated_at"] = now
    if required:
        payload["created_at"] = now
        payload["average_rating"] = 0.0
        payload["rating_count"] = 0
        payload["view_count"] = 0
    return payload


def populate_movie_people(documents: list[dict], people_collection):
    """
    Resolve director and cast references to person summaries.

    Args:
        documents (list[dict]): Movie documents to enrich in place.
        people_collection (Collection): People collection handle.

    Returns:
        list[dict]: The same documents.
    """
    populate(documents, "director", people_collection, PERSON_SUMMARY_PROJECTION)
    populate(documents, "cast", people_collection, PERSON_SUMMARY_PROJECTION)
    return documents


def record_view(movie_id, movies_collection):
    """
    Count one detail view of a movie.

    Args:
        movie_id (ObjectId): Movie identifier.
        movies_collection (Collection): Movies collection handle.

    Returns:
        bool: True when the movie exists.
    """
    result = movies_collection.update_one({"_id": movie_id}, {"$inc": {"view_count": 1}})
    return result.matched_count > 0


def delete_movie_cascade(movie_id, database, locks=None):
    """
    Delete a movie and every reference other collections hold to it.

    Args:
        movie_id (ObjectId): Movie identifier.
        database (Database): Database holding all collections.
        locks (RatingLocks | None): Lock registry to drop the movie from.

    Returns:
        dict: Number of documents touched per collection.
    """
    reviews = database["reviews"].delete_many({"movie": movie_id})
    lists = database["lists"].update_many({"movies": movie_id}, {"$pull": {"movies": movie_id}})
    users = database["users"].update_many({"wishlist": movie_id}, {"$pull": {"wishlist": movie_id}})
    people = database["people"].update_many(
        {"filmography.movie": movie_id}, {"$pull": {"filmography": {"movie": movie_id}}}
    )
    news = database["news"].update_many({"related_movies": movie_id}, {"$pull": {"related_movies": movie_id}})
    database["movies"].delete_one({"_id": movie_id})
    (locks or rating_locks).discard(movie_id)
    summary = {
        "reviews": reviews.deleted_count,
        "lists": lists.modified_count,
        "users": users.modified_count,
        "people": people.modified_count,
        "news": news.modified_count,
    }
    logger.info("Movie %s deleted with dependents %s", movie_id, summary)
    return summary
