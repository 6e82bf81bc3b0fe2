import logging
import re

from werkzeug.security import check_password_hash, generate_password_hash

from ..api_reviews.reviews_functions import RatingLocks, rating_locks, recompute_movie_rating
from ..common_functions import (
    clean_string,
    clean_string_list,
    parse_boolean,
    parse_object_id_list,
    require_object_id,
    utc_now,
)
from ..errors import Conflict, NotFound, Unauthorized, ValidationFailure

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MAX_USERNAME_LENGTH = 30
MIN_PASSWORD_LENGTH = 8
MAX_BIO_LENGTH = 500
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

NOTIFICATION_PREFERENCES = (
    "email_notifications",
    "upcoming_releases",
    "trailer_releases",
    "favorite_genre_releases",
    "favorite_actor_movies",
)
PRIVATE_FIELDS = ("password",)
WISHLIST_PROJECTION = {"title": 1, "cover_photo": 1, "average_rating": 1, "release_date": 1, "genres": 1}


def strip_private_fields(user: dict):
    """
    Drop credentials from a user document before it leaves the API.

    Args:
        user (dict): User document.

    Returns:
        dict: Copy without private fields.
    """
    return {key: value for key, value in user.items() if key not in PRIVATE_FIELDS}


def build_registration(data: dict | None):
    """
    Validate a registration body and build the user document.

    Args:
        data (dict | None): Submitted JSON body.

    Returns:
        dict: User document with a hashed password.
    """
    data = data or {}
    username = clean_string(data, "username", MAX_USERNAME_LENGTH, required=True, label="Username")
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValidationFailure(f"Username must be at least {MIN_USERNAME_LENGTH} characters long")

    email = clean_string(data, "email", required=True, label="Email").lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationFailure("Please enter a valid email address")

    password = data.get("password") or ""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailure(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    now = utc_now()
    return {
        "username": username,
        "email": email,
        "password": generate_password_hash(password),
        "profile": {"favorite_genres": [], "favorite_actors": [], "bio": "", "avatar": None},
        "wishlist": [],
        "notification_preferences": {key: True for key in NOTIFICATION_PREFERENCES},
        "role": "user",
        "created_at": now,
        "updated_at": now,
    }


def username_pattern(username: str):
    return {"$regex": f"^{re.escape(username)}$", "$options": "i"}


def ensure_unique_identity(username: str, email: str, users_collection):
    """
    Reject usernames or emails that are already registered.

    Usernames compare case-insensitively.

    Args:
        username (str): Requested username.
        email (str): Requested email, lowercased.
        users_collection (Collection): Users collection handle.
    """
    if users_collection.find_one({"username": username_pattern(username)}, {"_id": 1}):
        raise Conflict("Username already exists. Please choose another username")
    if users_collection.find_one({"email": email}, {"_id": 1}):
        raise Conflict("Email already exists. Please sign in or use a different email")


def authenticate(identifier: str, password: str, users_collection):
    """
    Check credentials against the stored password hash.

    Args:
        identifier (str): Username or email.
        password (str): Plain password.
        users_collection (Collection): Users collection handle.

    Returns:
        dict: Authenticated user document.
    """
    if not identifier or not password:
        raise ValidationFailure("Username and password are required")

    query = {"email": identifier.lower()} if "@" in identifier else {"username": username_pattern(identifier)}
    user = users_collection.find_one(query)
    if not user or not check_password_hash(user.get("password") or "", password):
        logger.warning("Failed login for %s", identifier)
        raise Unauthorized("Invalid credentials")
    return user


def build_profile_update(data: dict | None):
    """
    Validate a profile update and turn it into dotted ``$set`` fields.

    Args:
        data (dict | None): Submitted JSON body.

    Returns:
        dict: Fields for ``$set``.
    """
    data = data or {}
    updates = {}
    if "favorite_genres" in data:
        updates["profile.favorite_genres"] = clean_string_list(data, "favorite_genres")
    if "favorite_actors" in data:
        updates["profile.favorite_actors"] = parse_object_id_list(data.get("favorite_actors"), "person id")
    if "bio" in data:
        updates["profile.bio"] = clean_string(data, "bio", MAX_BIO_LENGTH) or ""
    if "avatar" in data:
        updates["profile.avatar"] = clean_string(data, "avatar")

    preferences = data.get("notification_preferences")
    if preferences is not None:
        if not isinstance(preferences, dict):
            raise ValidationFailure("notification_preferences must be an object")
        for key in NOTIFICATION_PREFERENCES:
            if key in preferences:
                updates[f"notification_preferences.{key}"] = parse_boolean(preferences[key], True)

    if not updates:
        raise ValidationFailure("No updatable fields provided")
    updates["updated_at"] = utc_now()
    return updates


def delete_user_cascade(user_id, database, locks: RatingLocks = rating_locks):
    """
    Delete a user together with the content they own.

    Their reviews go and each affected movie is re-aggregated. Lists they
    created go. They are removed from list followers and review likes.

    Args:
        user_id (ObjectId | str): User identifier.
        database (Database): Database holding all collections.
        locks (RatingLocks): Per-movie lock registry.

    Returns:
        dict: Number of documents touched per collection.
    """
    object_id = require_object_id(user_id, "user id")
    reviews = database["reviews"]
    movies = database["movies"]

    reviewed_movies = []
    for review in reviews.find({"user": object_id}, {"movie": 1}):
        if review.get("movie") is not None and review["movie"] not in reviewed_movies:
            reviewed_movies.append(review["movie"])
    removed_reviews = reviews.delete_many({"user": object_id})
    for movie_id in reviewed_movies:
        try:
            recompute_movie_rating(movie_id, movies, reviews, locks)
        except NotFound:
            logger.warning("Skipping rating of missing movie %s", movie_id)

    for review in reviews.find({"liked_by": object_id}, {"liked_by": 1}):
        liked_by = [entry for entry in review.get("liked_by") or [] if entry != object_id]
        reviews.update_one({"_id": review["_id"]}, {"$set": {"liked_by": liked_by, "likes": len(liked_by)}})

    lists = database["lists"].delete_many({"creator": object_id})
    followed = database["lists"].update_many({"followers": object_id}, {"$pull": {"followers": object_id}})
    news = database["news"].update_many({"author": object_id}, {"$set": {"author": None}})
    database["users"].delete_one({"_id": object_id})

    summary = {
        "reviews": removed_reviews.deleted_count,
        "rated_movies": len(reviewed_movies),
        "lists": lists.deleted_count,
        "followed_lists": followed.modified_count,
        "news": news.modified_count,
    }
    logger.info("User %s deleted with dependents %s", object_id, summary)
    return summary
