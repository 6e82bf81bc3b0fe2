from datetime import datetime

from pymongo import ASCENDING, DESCENDING

from ..errors import ValidationFailure

DEFAULT_SORT_FIELD = "average_rating"
SORTABLE_FIELDS = (
    "average_rating",
    "rating_count",
    "release_date",
    "runtime",
    "view_count",
    "title",
    "created_at",
)
MIN_YEAR = 1888
MAX_YEAR = 9998


def _first_present(params: dict, *keys: str):
    for key in keys:
        value = params.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def parse_min_rating(raw_value: str):
    """
    Parse the minimum mean rating filter.

    Args:
        raw_value (str): Value from the query string.

    Returns:
        float: Rating lower bound.
    """
    try:
        rating = float(raw_value)
    except (TypeError, ValueError):
        raise ValidationFailure("rating must be a number")
    if rating != rating or rating < 0 or rating > 5:
        raise ValidationFailure("rating must be between 0 and 5")
    return rating


def release_year_range(raw_value: str):
    """
    Turn a release year into the half-open range covering that year.

    Args:
        raw_value (str): Year from the query string.

    Returns:
        dict: ``$gte`` / ``$lt`` bounds on ``release_date``.
    """
    try:
        year = int(raw_value)
    except (TypeError, ValueError):
        raise ValidationFailure("year must be an integer")
    if year < MIN_YEAR or year > MAX_YEAR:
        raise ValidationFailure(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
    return {"$gte": datetime(year, 1, 1), "$lt": datetime(year + 1, 1, 1)}


def resolve_sort(raw_value: str | None):
    """
    Map the requested sort field onto the allow-list.

    Args:
        raw_value (str | None): Field name from the query string.

    Returns:
        list[tuple[str, int]]: Sort specification, descending on the field.
    """
    field = raw_value or DEFAULT_SORT_FIELD
    if field not in SORTABLE_FIELDS:
        allowed = ", ".join(SORTABLE_FIELDS)
        raise ValidationFailure(f"sort_by must be one of: {allowed}")
    return [(field, DESCENDING), ("_id", ASCENDING)]


def build_search_filter(params: dict):
    """
    Translate search parameters into a MongoDB filter and sort.

    Every present parameter adds one constraint; absent ones add none.

    Args:
        params (dict): Optional ``query``, ``genre``, ``rating``, ``year``
            (or ``releaseYear``) and ``sortBy`` values.

    Returns:
        tuple[dict, list[tuple[str, int]]]: Filter and sort specification.
    """
    criteria = {}

    query = _first_present(params, "query", "q")
    if query:
        criteria["$text"] = {"$search": query}

    genre = _first_present(params, "genre")
    if genre:
        criteria["genres"] = genre

    rating = _first_present(params, "rating", "min_rating")
    if rating is not None:
        criteria["average_rating"] = {"$gte": parse_min_rating(rating)}

    year = _first_present(params, "year", "releaseYear", "release_year")
    if year is not None:
        criteria["release_date"] = release_year_range(year)

    sort = resolve_sort(_first_present(params, "sortBy", "sort_by", "sort"))
    return criteria, sort
