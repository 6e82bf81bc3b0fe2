import logging
import re

from pymongo import ASCENDING, DESCENDING

from ..common_functions import (
    clean_string,
    clean_string_list,
    parse_datetime,
    parse_object_id,
    require_object_id,
    safe_int,
    utc_now,
)
from ..errors import ValidationFailure

logger = logging.getLogger(__name__)

PERSON_ROLES = ("Actor", "Director", "Producer", "Writer", "Composer", "Cinematographer")
ROLE_FILTERS = {
    "cast": ["Actor"],
    "crew": ["Director", "Producer", "Writer", "Composer", "Cinematographer"],
    "actor": ["Actor"],
    "director": ["Director"],
    "producer": ["Producer"],
    "writer": ["Writer"],
    "composer": ["Composer"],
    "cinematographer": ["Cinematographer"],
}
SORT_OPTIONS = {
    "name-asc": [("name", ASCENDING), ("_id", ASCENDING)],
    "name-desc": [("name", DESCENDING), ("_id", ASCENDING)],
}
DEFAULT_SORT_OPTION = "name-asc"
FIRST_FILM_YEAR = 1888

PERSON_DETAIL_CACHE_PREFIX = "person_detail:"
PEOPLE_LIST_CACHE_PREFIX = "people:"
MOVIE_SUMMARY_PROJECTION = {"title": 1, "release_date": 1, "cover_photo": 1, "average_rating": 1}


def build_role_conditions(role: str | None):
    """
    Build MongoDB match rules for a role filter.

    Args:
        role (str | None): Role from the client.

    Returns:
        dict | None: Filter on ``roles`` or None when no filtering applies.
    """
    if not role or role == "all":
        return None

    roles = ROLE_FILTERS.get(role.lower())
    if not roles:
        return None
    return {"roles": {"$in": roles}}


def build_people_query(search: str | None, role: str | None):
    """
    Create the filter used by the people listing.

    Args:
        search (str | None): Name fragment.
        role (str | None): Role filter from the request.

    Returns:
        dict: MongoDB filter.
    """
    conditions = []
    if search:
        conditions.append({"name": {"$regex": re.escape(search), "$options": "i"}})
    role_conditions = build_role_conditions(role)
    if role_conditions:
        conditions.append(role_conditions)
    if not conditions:
        return {}
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def resolve_people_sort(sort_option: str | None):
    option = (sort_option or DEFAULT_SORT_OPTION).lower()
    if option not in SORT_OPTIONS:
        option = DEFAULT_SORT_OPTION
    return option, SORT_OPTIONS[option]


def _parse_filmography(value):
    if not isinstance(value, list):
        raise ValidationFailure("filmography must be an array")
    entries = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValidationFailure("filmography entries must be objects")
        movie_id = parse_object_id(entry.get("movie"))
        if movie_id is None:
            continue
        role = clean_string(entry, "role", required=True, label="Filmography role")
        entries.append({"movie": movie_id, "role": role})
    return entries


def _parse_awards(value):
    if not isinstance(value, list):
        raise ValidationFailure("awards must be an array")
    awards = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValidationFailure("awards entries must be objects")
        year = safe_int(entry.get("year"), 0)
        if year < FIRST_FILM_YEAR:
            raise ValidationFailure(f"Award year must be {FIRST_FILM_YEAR} or later")
        awards.append({
            "name": clean_string(entry, "name", 200, required=True, label="Award name"),
            "year": year,
            "category": clean_string(entry, "category", 200, required=True, label="Award category"),
        })
    return awards


def build_person_payload(data: dict | None, partial: bool = False):
    """
    Validate a submitted person body and prepare it for persistence.

    Filmography entries pointing at malformed movie ids are dropped.

    Args:
        data (dict | None): Submitted JSON body.
        partial (bool): True for updates, where every field is optional.

    Returns:
        dict: Fields to store.
    """
    data = dict(data or {})
    data.pop("_id", None)
    payload = {}
    required = not partial

    if required or "name" in data:
        payload["name"] = clean_string(data, "name", 100, required=True, label="Name")
    if data.get("birth_date"):
        payload["birth_date"] = parse_datetime(data.get("birth_date"), "birth date")
    if "biography" in data:
        payload["biography"] = clean_string(data, "biography", 2000)
    if "photo" in data:
        payload["photo"] = clean_string(data, "photo")

    if "roles" in data:
        roles = clean_string_list(data, "roles")
        canonical = {role.lower(): role for role in PERSON_ROLES}
        unknown = [role for role in roles if role.lower() not in canonical]
        if unknown:
            raise ValidationFailure(f"Unknown roles: {', '.join(unknown)}")
        payload["roles"] = [canonical[role.lower()] for role in roles]
    elif required:
        payload["roles"] = []

    if "filmography" in data:
        payload["filmography"] = _parse_filmography(data.get("filmography"))
    elif required:
        payload["filmography"] = []

    if "awards" in data:
        payload["awards"] = _parse_awards(data.get("awards"))

    if partial and not payload:
        raise ValidationFailure("No updatable fields provided")

    now = utc_now()
    payload["updated_at"] = now
    if required:
        payload["created_at"] = now
    return payload


def populate_filmography(person: dict, movies_collection):
    """
    Replace filmography movie ids with movie summaries.

    Entries whose movie no longer exists are dropped.

    Args:
        person (dict): Person document, enriched in place.
        movies_collection (Collection): Movies collection handle.

    Returns:
        dict: The same document.
    """
    entries = person.get("filmography") or []
    movie_ids = [entry.get("movie") for entry in entries if entry.get("movie") is not None]
    if not movie_ids:
        person["filmography"] = []
        return person

    lookup = {
        movie["_id"]: movie
        for movie in movies_collection.find({"_id": {"$in": movie_ids}}, MOVIE_SUMMARY_PROJECTION)
    }
    person["filmography"] = [
        {"movie": lookup[entry["movie"]], "role": entry.get("role")}
        for entry in entries
        if entry.get("movie") in lookup
    ]
    return person


def delete_person_cascade(person_id, database):
    """
    Delete a person and detach them from movies and news.

    Args:
        person_id (ObjectId): Person identifier.
        database (Database): Database holding all collections.

    Returns:
        dict: Number of documents touched per collection.
    """
    object_id = require_object_id(person_id, "person id")
    cast = database["movies"].update_many({"cast": object_id}, {"$pull": {"cast": object_id}})
    directed = database["movies"].update_many({"director": object_id}, {"$set": {"director": None}})
    news = database["news"].update_many({"related_people": object_id}, {"$pull": {"related_people": object_id}})
    users = database["users"].update_many(
        {"profile.favorite_actors": object_id}, {"$pull": {"profile.favorite_actors": object_id}}
    )
    database["people"].delete_one({"_id": object_id})
    summary = {
        "cast": cast.modified_count,
        "directed": directed.modified_count,
        "news": news.modified_count,
        "users": users.modified_count,
    }
    logger.info("Person %s deleted with dependents %s", object_id, summary)
    return summary
