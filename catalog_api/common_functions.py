import json
import logging
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from flask import current_app, request
import redis

from .errors import NotFound, ValidationFailure
from .store import cache_client

logger = logging.getLogger(__name__)


def serialize_document(document: Any):
    """
    Convert a MongoDB document into a JSON-friendly structure.

    ObjectIds become hex strings and datetimes ISO 8601 strings, recursively.

    Args:
        document (Any): Document, list or scalar value.

    Returns:
        Any: Serializable copy of the value.
    """
    if isinstance(document, dict):
        return {key: serialize_document(value) for key, value in document.items()}
    if isinstance(document, (list, tuple)):
        return [serialize_document(entry) for entry in document]
    if isinstance(document, ObjectId):
        return str(document)
    if isinstance(document, datetime):
        return document.isoformat()
    return document


def parse_object_id(value: Any):
    """
    Parse a value into an ObjectId.

    Args:
        value (Any): Identifier supplied by the client.

    Returns:
        ObjectId | None: Parsed identifier or None when malformed.
    """
    if isinstance(value, ObjectId):
        return value
    if not value:
        return None
    try:
        return ObjectId(str(value).strip())
    except (InvalidId, TypeError):
        return None


def require_object_id(value: Any, label: str = "id"):
    """
    Parse an identifier, raising when it is malformed.

    Args:
        value (Any): Identifier supplied by the client.
        label (str): Field name used in the error message.

    Returns:
        ObjectId: Parsed identifier.
    """
    parsed = parse_object_id(value)
    if parsed is None:
        raise ValidationFailure(f"Invalid {label}")
    return parsed


def parse_object_id_list(values: Any, label: str = "id"):
    """
    Parse a list of identifiers, keeping order and dropping duplicates.

    Args:
        values (Any): List of identifiers or a comma-separated string.
        label (str): Field name used in the error message.

    Returns:
        list[ObjectId]: Parsed identifiers.
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = [part for part in values.split(",") if part.strip()]
    if not isinstance(values, (list, tuple)):
        raise ValidationFailure(f"{label} must be an array")
    parsed = []
    for value in values:
        identifier = require_object_id(value, label)
        if identifier not in parsed:
            parsed.append(identifier)
    return parsed


def find_by_id(collection, identifier: Any, label: str, projection: dict | None = None):
    """
    Fetch a document by identifier or raise NotFound.

    Args:
        collection (Collection): Collection to query.
        identifier (Any): Identifier from the request.
        label (str): Entity name used in the error message.
        projection (dict | None): Optional projection.

    Returns:
        dict: Matching document.
    """
    object_id = parse_object_id(identifier)
    document = collection.find_one({"_id": object_id}, projection) if object_id else None
    if not document:
        logger.warning("%s not found: %s", label, identifier)
        raise NotFound(f"{label} not found")
    return document


def safe_int(value, default=0):
    """
    Parse a value into an integer, tolerating strings and floats.

    Args:
        value (Any): Raw value to convert.
        default (int): Fallback value when parsing fails.

    Returns:
        int: Parsed integer or the default.
    """
    if value is None:
        return default
    try:
        return int(float(str(value).split()[0]))
    except (TypeError, ValueError, IndexError):
        return default


def parse_limit_param(raw_value: object, default_limit: int, max_limit: int):
    """
    Sanitize limit query parameters, clamping to configured bounds.

    Args:
        raw_value (Any): Limit value provided by the client.
        default_limit (int): Fallback limit when parsing fails.
        max_limit (int): Maximum allowed limit.

    Returns:
        int: Validated limit value.
    """
    try:
        limit = int(raw_value)
        if limit <= 0:
            return default_limit
        return min(limit, max_limit)
    except (TypeError, ValueError):
        return default_limit


def parse_page_params(args):
    """
    Read ``page`` and ``limit``/``page_size`` from query arguments.

    Args:
        args (MultiDict): Request query arguments.

    Returns:
        tuple[int, int, int]: Page number, page size and skip offset.
    """
    default_size = current_app.config["DEFAULT_PAGE_SIZE"]
    max_size = current_app.config["MAX_PAGE_SIZE"]
    page = max(safe_int(args.get("page"), 1), 1)
    raw_size = args.get("page_size") or args.get("limit")
    page_size = parse_limit_param(raw_size, default_size, max_size)
    return page, page_size, (page - 1) * page_size


def build_page_payload(results: list, page: int, page_size: int, total: int, **extra):
    """
    Assemble the common paginated payload.

    Args:
        results (list): Serialized documents of the page.
        page (int): Page number.
        page_size (int): Page length.
        total (int): Total number of matching documents.
        **extra: Additional fields echoed back to the client.

    Returns:
        dict: Payload for JSON output.
    """
    total_pages = (total + page_size - 1) // page_size if total else 0
    payload = {
        "results": results,
        "page": page,
        "pageSize": page_size,
        "total": total,
        "totalPages": total_pages,
    }
    payload.update(extra)
    return payload


def fetch_page(collection, query: dict, sort: list, skip: int, page_size: int, **find_kwargs):
    """
    Run a paginated find and count the matching documents.

    Returns:
        tuple[list[dict], int]: Raw documents of the page and the total count.
    """
    cursor = collection.find(query, **find_kwargs).sort(sort).skip(skip).limit(page_size)
    documents = list(cursor)
    total = collection.count_documents(query)
    return documents, total


def populate(documents: list[dict], field: str, target_collection, projection: dict | None = None):
    """
    Replace reference ids stored under ``field`` with the referenced documents.

    References that no longer resolve are dropped from list fields and become
    None on scalar fields.

    Args:
        documents (list[dict]): Documents to enrich in place.
        field (str): Field holding an id or a list of ids.
        target_collection (Collection): Collection the ids point to.
        projection (dict | None): Optional projection for the referenced documents.

    Returns:
        list[dict]: The same documents.
    """
    wanted = []
    for doc in documents:
        value = doc.get(field)
        refs = value if isinstance(value, list) else [value]
        for ref in refs:
            if isinstance(ref, ObjectId) and ref not in wanted:
                wanted.append(ref)
    if not wanted:
        lookup = {}
    else:
        lookup = {item["_id"]: item for item in target_collection.find({"_id": {"$in": wanted}}, projection)}

    for doc in documents:
        if field not in doc:
            continue
        value = doc[field]
        if isinstance(value, list):
            doc[field] = [lookup[ref] for ref in value if ref in lookup]
        else:
            doc[field] = lookup.get(value)
    return documents


def build_cache_key(prefix: str, *parts: Any):
    """
    Build a Redis cache key with a prefix and optional segments.

    Args:
        prefix (str): Root part of the key.
        *parts: Additional segments.

    Returns:
        str: Colon-separated cache key.
    """
    normalized = [prefix]
    for part in parts:
        normalized.append(str(part) if part not in (None, "") else "all")
    return ":".join(normalized)


def cache_get(key: str):
    """
    Read a cached JSON payload.

    Args:
        key (str): Cache key.

    Returns:
        Any | None: Decoded payload or None on a miss.
    """
    try:
        cached = cache_client().get(key)
    except redis.RedisError as error:
        logger.warning("Cache read failed for %s: %s", key, error)
        return None
    if not cached:
        return None
    try:
        payload = json.loads(cached)
    except json.JSONDecodeError:
        return None
    logger.debug("cache hit: %s", key)
    return payload


def cache_set(key: str, payload: Any):
    """
    Store a JSON payload with the configured TTL.

    Args:
        key (str): Cache key.
        payload (Any): Serializable payload.
    """
    try:
        cache_client().setex(key, current_app.config["CACHE_TTL_SECONDS"], json.dumps(payload))
    except redis.RedisError as error:
        logger.warning("Cache write failed for %s: %s", key, error)


def invalidate_keys(*keys: str):
    """
    Delete cache entries.

    Args:
        *keys (str): Keys to delete.
    """
    if not keys:
        return
    try:
        cache_client().delete(*keys)
    except redis.RedisError as error:
        logger.warning("Cache invalidation failed: %s", error)


def invalidate_prefix(*prefixes: str):
    """
    Delete every cache entry whose key starts with one of the prefixes.

    Args:
        *prefixes (str): Key prefixes to purge.
    """
    try:
        client = cache_client()
        for prefix in prefixes:
            for key in client.scan_iter(f"{prefix}*"):
                client.delete(key)
    except redis.RedisError as error:
        logger.warning("Cache invalidation failed: %s", error)


def utc_now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_boolean(value: Any, default: bool = False):
    """
    Parse a value into a boolean.

    Args:
        value (Any): Candidate value.
        default (bool): Fallback when the value is empty.

    Returns:
        bool: Parsed boolean.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if not normalized:
            return default
        return normalized in {"1", "true", "yes", "on", "public", "visible"}
    return default if value is None else bool(value)


def parse_datetime(value: Any, label: str):
    """
    Parse an ISO 8601 date or datetime string.

    Args:
        value (Any): Raw value.
        label (str): Field name used in the error message.

    Returns:
        datetime: Parsed naive UTC datetime.
    """
    if isinstance(value, datetime):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValidationFailure(f"{label} is required")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationFailure(f"Invalid {label}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def clean_string(payload: dict, key: str, max_length: int | None = None, required: bool = False, label: str | None = None):
    """
    Read a trimmed string field from a payload with length checks.

    Returns:
        str | None: Trimmed value, or None when absent and optional.
    """
    label = label or key
    value = payload.get(key)
    text = str(value).strip() if value is not None else ""
    if not text:
        if required:
            raise ValidationFailure(f"{label} is required")
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationFailure(f"{label} cannot exceed {max_length} characters")
    return text


def clean_string_list(payload: dict, key: str, max_length: int | None = None):
    """
    Read a list of non-empty strings, accepting a comma-separated string too.

    Returns:
        list[str]: Trimmed, de-duplicated values in input order.
    """
    value = payload.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValidationFailure(f"{key} must be an array")
    items = []
    for entry in value:
        text = str(entry).strip()
        if not text or text in items:
            continue
        if max_length is not None and len(text) > max_length:
            raise ValidationFailure(f"{key} entries cannot exceed {max_length} characters")
        items.append(text)
    return items


def request_payload():
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationFailure("JSON object body expected")
    return payload


def acting_user_id(payload: dict | None = None):
    """
    Resolve the user a request acts for.

    The ``X-User-Id`` header wins over ``user_id`` in the body or query string.

    Args:
        payload (dict | None): Parsed JSON body.

    Returns:
        ObjectId: Identifier of the acting user.
    """
    raw = request.headers.get("X-User-Id")
    if not raw and payload:
        raw = payload.get("user_id")
    if not raw:
        raw = request.args.get("user_id")
    if not raw:
        raise ValidationFailure("user_id is required")
    return require_object_id(raw, "user_id")
