"""
HTTP tests for the catalog blueprints through Flask's test client.
"""

import unittest

from bson import ObjectId

from catalog_data import build_test_app, insert_movie, insert_person, insert_review, insert_user
from stubs import BrokenRedis


class CatalogRouteTestCase(unittest.TestCase):

    def setUp(self):
        self.app, self.db, self.cache = build_test_app()
        self.client = self.app.test_client()

    def movie_body(self, **fields):
        body = {
            "title": "Arrival",
            "genres": ["Sci-Fi", "Drama"],
            "director": str(ObjectId()),
            "release_date": "2016-11-11",
            "runtime": 116,
            "synopsis": "A linguist works with the military to talk to visitors.",
            "age_rating": "PG-13",
        }
        body.update(fields)
        return body


class TestAppSetup(CatalogRouteTestCase):

    def test_health(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["status"], "ok")

    def test_indexes_are_created(self):
        self.assertTrue(self.db["movies"].indexes)
        unique_review_index = [kwargs for _, kwargs in self.db["reviews"].indexes if kwargs.get("unique")]
        self.assertEqual(len(unique_review_index), 1)

    def test_unknown_route_answers_json(self):
        response = self.client.get("/api/nothing-here")
        self.assertEqual(response.status_code, 404)
        self.assertIn("error", response.get_json())


class TestMovieRoutes(CatalogRouteTestCase):

    def test_create_then_fetch_movie(self):
        director = insert_person(self.db, "Denis", roles=("Director",))
        response = self.client.post("/api/movies", json=self.movie_body(director=str(director["_id"])))
        self.assertEqual(response.status_code, 201)
        created = response.get_json()
        self.assertEqual(created["average_rating"], 0.0)
        self.assertEqual(created["view_count"], 0)
        self.assertTrue(created["cover_photo"].startswith("http"))

        response = self.client.get(f"/api/movies/{created['_id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["director"]["name"], "Denis")
        stored = self.db["movies"].find_one({"_id": ObjectId(created["_id"])})
        self.assertEqual(stored["view_count"], 1)

    def test_detail_views_count_even_when_cached(self):
        movie = insert_movie(self.db, "Counted", ["Drama"])
        self.client.get(f"/api/movies/{movie['_id']}")
        self.client.get(f"/api/movies/{movie['_id']}")
        self.assertEqual(self.db["movies"].find_one({"_id": movie["_id"]})["view_count"], 2)

    def test_invalid_movie_is_rejected(self):
        response = self.client.post("/api/movies", json=self.movie_body(genres=[], age_rating="X"))
        self.assertEqual(response.status_code, 400)
        self.assertIn("genre", response.get_json()["error"])

    def test_client_cannot_set_derived_rating(self):
        response = self.client.post("/api/movies", json=self.movie_body(average_rating=5))
        self.assertEqual(response.get_json()["average_rating"], 0.0)

    def test_missing_movie(self):
        self.assertEqual(self.client.get(f"/api/movies/{ObjectId()}").status_code, 404)
        self.assertEqual(self.client.get("/api/movies/not-an-id").status_code, 400)

    def test_list_is_paginated(self):
        for index in range(3):
            insert_movie(self.db, f"Movie {index}", ["Drama"])
        payload = self.client.get("/api/movies?page=2&limit=2").get_json()
        self.assertEqual(payload["total"], 3)
        self.assertEqual(payload["totalPages"], 2)
        self.assertEqual(len(payload["results"]), 1)

    def test_update_invalidates_cached_detail(self):
        movie = insert_movie(self.db, "Old title", ["Drama"])
        self.client.get(f"/api/movies/{movie['_id']}")
        response = self.client.put(f"/api/movies/{movie['_id']}", json={"title": "New title"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f"/api/movies/{movie['_id']}").get_json()["title"], "New title")

    def test_update_refreshes_cached_person_detail(self):
        movie = insert_movie(self.db, "Old title", ["Drama"])
        person = insert_person(self.db, "Lead", filmography=[{"movie": movie["_id"], "role": "Actor"}])
        detail = self.client.get(f"/api/people/{person['_id']}").get_json()
        self.assertEqual(detail["filmography"][0]["movie"]["title"], "Old title")

        self.client.put(f"/api/movies/{movie['_id']}", json={"title": "New title"})

        detail = self.client.get(f"/api/people/{person['_id']}").get_json()
        self.assertEqual(detail["filmography"][0]["movie"]["title"], "New title")

    def test_delete_cascades(self):
        movie = insert_movie(self.db, "Gone", ["Drama"])
        insert_review(self.db, ObjectId(), movie["_id"], 3)
        response = self.client.delete(f"/api/movies/{movie['_id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["removed"]["reviews"], 1)
        self.assertEqual(self.db["reviews"].count_documents({}), 0)

    def test_cache_outage_does_not_fail_requests(self):
        app, db, _ = build_test_app(redis_client=BrokenRedis())
        movie = insert_movie(db, "Resilient", ["Drama"])
        response = app.test_client().get(f"/api/movies/{movie['_id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["title"], "Resilient")


class TestReviewRoutes(CatalogRouteTestCase):

    def setUp(self):
        super().setUp()
        self.movie = insert_movie(self.db, "Alpha", ["Drama"])
        self.user = insert_user(self.db, "alice")
        self.headers = {"X-User-Id": str(self.user["_id"])}

    def test_review_upsert_updates_movie_rating(self):
        url = f"/api/reviews/{self.movie['_id']}"
        response = self.client.post(url, json={"rating": 3, "content": "Decent enough drama."}, headers=self.headers)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.get_json()["movie_average_rating"], 3.0)

        response = self.client.post(url, json={"rating": 5, "content": "Better on a rewatch."}, headers=self.headers)
        self.assertEqual(response.status_code, 200)
        stored = self.db["movies"].find_one({"_id": self.movie["_id"]})
        self.assertEqual((stored["average_rating"], stored["rating_count"]), (5.0, 1))

    def test_review_refreshes_cached_list_detail(self):
        created = self.client.post(
            "/api/lists", json={"name": "Watched", "movies": [str(self.movie["_id"])]}, headers=self.headers
        ).get_json()
        detail = self.client.get(f"/api/lists/{created['_id']}").get_json()
        self.assertEqual(detail["movies"][0]["average_rating"], 0.0)

        self.client.post(
            f"/api/reviews/{self.movie['_id']}",
            json={"rating": 5, "content": "Loved every minute."},
            headers=self.headers,
        )

        detail = self.client.get(f"/api/lists/{created['_id']}").get_json()
        self.assertEqual(detail["movies"][0]["average_rating"], 5.0)

    def test_review_requires_acting_user(self):
        response = self.client.post(f"/api/reviews/{self.movie['_id']}", json={"rating": 3, "content": "No user here."})
        self.assertEqual(response.status_code, 400)

    def test_review_of_unknown_movie(self):
        response = self.client.post(
            f"/api/reviews/{ObjectId()}", json={"rating": 3, "content": "Ghost movie text."}, headers=self.headers
        )
        self.assertEqual(response.status_code, 404)

    def test_movie_reviews_populate_username(self):
        insert_review(self.db, self.user["_id"], self.movie["_id"], 4)
        payload = self.client.get(f"/api/reviews/movie/{self.movie['_id']}").get_json()
        self.assertEqual(payload["total"], 1)
        self.assertEqual(payload["results"][0]["user"]["username"], "alice")
        self.assertNotIn("liked_by", payload["results"][0])

    def test_like_and_highlights(self):
        review = insert_review(self.db, ObjectId(), self.movie["_id"], 2)
        response = self.client.post(f"/api/reviews/like/{review['_id']}", headers=self.headers)
        self.assertEqual(response.get_json()["likes"], 1)

        highlights = self.client.get(f"/api/reviews/highlights/{self.movie['_id']}").get_json()
        self.assertEqual(len(highlights["top_rated"]), 1)
        self.assertEqual(highlights["most_discussed"][0]["likes"], 1)


class TestRecommendationAndSearchRoutes(CatalogRouteTestCase):

    def setUp(self):
        super().setUp()
        director = ObjectId()
        self.alpha = insert_movie(self.db, "Alpha", ["Drama"], director, average_rating=4.0, view_count=3)
        self.beta = insert_movie(self.db, "Beta", ["Comedy"], director, average_rating=2.0, view_count=9)

    def test_similar(self):
        payload = self.client.get(f"/api/recommendations/similar/{self.alpha['_id']}").get_json()
        self.assertEqual([movie["title"] for movie in payload], ["Beta"])
        self.assertEqual(self.client.get("/api/recommendations/similar/unknown").get_json(), [])

    def test_personalized(self):
        user = insert_user(self.db, "fan", ["Comedy"])
        response = self.client.get("/api/recommendations/personalized", headers={"X-User-Id": str(user["_id"])})
        self.assertEqual([movie["title"] for movie in response.get_json()], ["Beta"])
        response = self.client.get(f"/api/recommendations/personalized?user_id={ObjectId()}")
        self.assertEqual(response.status_code, 404)

    def test_trending_and_top_rated(self):
        trending = self.client.get("/api/recommendations/trending").get_json()
        self.assertEqual([movie["title"] for movie in trending], ["Beta", "Alpha"])
        top_rated = self.client.get("/api/recommendations/top-rated?limit=1").get_json()
        self.assertEqual([movie["title"] for movie in top_rated], ["Alpha"])

    def test_search(self):
        payload = self.client.get("/api/search?genre=Comedy&rating=3").get_json()
        self.assertEqual(payload["results"], [])
        payload = self.client.get("/api/search?query=alpha").get_json()
        self.assertEqual([movie["title"] for movie in payload["results"]], ["Alpha"])

    def test_search_rejects_unknown_sort(self):
        response = self.client.get("/api/search?sort_by=password")
        self.assertEqual(response.status_code, 400)
        self.assertIn("sort_by", response.get_json()["error"])

    def test_search_accepts_camel_case_parameters(self):
        self.assertEqual(self.client.get("/api/search?sortBy=password").status_code, 400)
        payload = self.client.get("/api/search?sortBy=view_count").get_json()
        self.assertEqual([movie["title"] for movie in payload["results"]], ["Beta", "Alpha"])
        payload = self.client.get("/api/search?releaseYear=1999").get_json()
        self.assertEqual(payload["results"], [])

    def test_top_by_genre(self):
        payload = self.client.get("/api/search/genre/Drama").get_json()
        self.assertEqual([movie["title"] for movie in payload], ["Alpha"])


class TestPeopleRoutes(CatalogRouteTestCase):

    def test_people_crud(self):
        response = self.client.post("/api/people", json={"name": "Amy Adams", "roles": ["actor"]})
        self.assertEqual(response.status_code, 201)
        person = response.get_json()
        self.assertEqual(person["roles"], ["Actor"])

        insert_person(self.db, "Denis Villeneuve", roles=("Director",))
        payload = self.client.get("/api/people?role=director").get_json()
        self.assertEqual([entry["name"] for entry in payload["results"]], ["Denis Villeneuve"])
        payload = self.client.get("/api/people?q=amy").get_json()
        self.assertEqual(payload["total"], 1)

        response = self.client.put(f"/api/people/{person['_id']}", json={"biography": "Actress."})
        self.assertEqual(response.get_json()["biography"], "Actress.")
        self.assertEqual(self.client.delete(f"/api/people/{person['_id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/people/{person['_id']}").status_code, 404)

    def test_unknown_role_is_rejected(self):
        response = self.client.post("/api/people", json={"name": "Someone", "roles": ["Stunt double"]})
        self.assertEqual(response.status_code, 400)


class TestListRoutes(CatalogRouteTestCase):

    def setUp(self):
        super().setUp()
        self.user = insert_user(self.db, "curator")
        self.movie = insert_movie(self.db, "Listed", ["Drama"])
        self.headers = {"X-User-Id": str(self.user["_id"])}

    def test_list_lifecycle(self):
        response = self.client.post(
            "/api/lists", json={"name": "Favourites", "movies": [str(self.movie["_id"])]}, headers=self.headers
        )
        self.assertEqual(response.status_code, 201)
        created = response.get_json()
        self.assertEqual(created["creator"]["username"], "curator")

        detail = self.client.get(f"/api/lists/{created['_id']}").get_json()
        self.assertEqual(detail["movies"][0]["title"], "Listed")

        follower = insert_user(self.db, "follower")
        response = self.client.post(f"/api/lists/{created['_id']}/follow", headers={"X-User-Id": str(follower["_id"])})
        self.assertEqual(response.get_json()["followers"], [str(follower["_id"])])
        response = self.client.post(f"/api/lists/{created['_id']}/unfollow", json={"user_id": str(follower["_id"])})
        self.assertEqual(response.get_json()["followers"], [])

        other = insert_movie(self.db, "Second", ["Drama"])
        response = self.client.post(f"/api/lists/{created['_id']}/movies", json={"movie_id": str(other["_id"])})
        self.assertEqual([movie["title"] for movie in response.get_json()["movies"]], ["Listed", "Second"])
        response = self.client.post(f"/api/lists/{created['_id']}/movies", json={"movie_id": str(other["_id"])})
        self.assertEqual(response.status_code, 400)
        response = self.client.delete(f"/api/lists/{created['_id']}/movies/{self.movie['_id']}")
        self.assertEqual([movie["title"] for movie in response.get_json()["movies"]], ["Second"])

        self.assertEqual(self.client.delete(f"/api/lists/{created['_id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/lists/{created['_id']}").status_code, 404)

    def test_only_public_lists_are_listed(self):
        self.client.post("/api/lists", json={"name": "Open"}, headers=self.headers)
        self.client.post("/api/lists", json={"name": "Secret", "is_public": False}, headers=self.headers)
        payload = self.client.get("/api/lists").get_json()
        self.assertEqual([entry["name"] for entry in payload["results"]], ["Open"])

    def test_list_with_unknown_movie_is_rejected(self):
        response = self.client.post(
            "/api/lists", json={"name": "Broken", "movies": [str(ObjectId())]}, headers=self.headers
        )
        self.assertEqual(response.status_code, 404)


class TestNewsRoutes(CatalogRouteTestCase):

    def test_news_crud_with_population(self):
        author = insert_user(self.db, "reporter")
        movie = insert_movie(self.db, "Covered", ["Drama"])
        body = {
            "title": "Sequel announced",
            "content": "The studio confirmed a sequel.",
            "author": str(author["_id"]),
            "related_movies": [str(movie["_id"])],
            "tags": ["sequel", "sequel", "studio"],
        }
        response = self.client.post("/api/news", json=body)
        self.assertEqual(response.status_code, 201)
        article = response.get_json()
        self.assertEqual(article["tags"], ["sequel", "studio"])

        payload = self.client.get("/api/news").get_json()
        self.assertEqual(payload["results"][0]["author"]["username"], "reporter")
        self.assertEqual(payload["results"][0]["related_movies"][0]["title"], "Covered")

        response = self.client.put(f"/api/news/{article['_id']}", json={"title": "Sequel confirmed"})
        self.assertEqual(response.get_json()["title"], "Sequel confirmed")
        self.assertEqual(self.client.delete(f"/api/news/{article['_id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/news/{article['_id']}").status_code, 404)

    def test_news_needs_existing_author(self):
        body = {"title": "Orphan", "content": "Nobody wrote this.", "author": str(ObjectId())}
        self.assertEqual(self.client.post("/api/news", json=body).status_code, 404)


class TestUserRoutes(CatalogRouteTestCase):

    def register(self, **fields):
        body = {"username": "moviefan", "email": "Fan@Example.com", "password": "secret-pass"}
        body.update(fields)
        return self.client.post("/api/users/register", json=body)

    def test_register_and_login(self):
        response = self.register()
        self.assertEqual(response.status_code, 201)
        user = response.get_json()
        self.assertEqual(user["email"], "fan@example.com")
        self.assertNotIn("password", user)
        stored = self.db["users"].find_one({"username": "moviefan"})
        self.assertNotEqual(stored["password"], "secret-pass")

        response = self.client.post("/api/users/login", json={"username": "moviefan", "password": "secret-pass"})
        self.assertEqual(response.status_code, 200)
        response = self.client.post("/api/users/login", json={"email": "FAN@example.com", "password": "secret-pass"})
        self.assertEqual(response.status_code, 200)
        response = self.client.post("/api/users/login", json={"username": "moviefan", "password": "wrong-pass"})
        self.assertEqual(response.status_code, 401)

    def test_login_ignores_username_case(self):
        self.register(username="Alice")
        response = self.client.post("/api/users/login", json={"username": "alice", "password": "secret-pass"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["username"], "Alice")

    def test_duplicate_registration_conflicts(self):
        self.register()
        self.assertEqual(self.register(email="other@example.com", username="MovieFan").status_code, 409)
        self.assertEqual(self.register(username="another").status_code, 409)

    def test_registration_validation(self):
        self.assertEqual(self.register(username="ab").status_code, 400)
        self.assertEqual(self.register(password="short").status_code, 400)
        self.assertEqual(self.register(email="not-an-email").status_code, 400)

    def test_profile_and_wishlist(self):
        user = self.register().get_json()
        movie = insert_movie(self.db, "Wanted", ["Drama"])

        response = self.client.put(
            f"/api/users/{user['_id']}/profile",
            json={"favorite_genres": ["Drama"], "bio": "Film lover", "notification_preferences": {"trailer_releases": False}},
        )
        profile = response.get_json()
        self.assertEqual(profile["profile"]["favorite_genres"], ["Drama"])
        self.assertFalse(profile["notification_preferences"]["trailer_releases"])

        response = self.client.post(f"/api/users/{user['_id']}/wishlist", json={"movie_id": str(movie["_id"])})
        self.assertEqual(response.get_json()["wishlist"][0]["title"], "Wanted")
        detail = self.client.get(f"/api/users/{user['_id']}").get_json()
        self.assertEqual(detail["wishlist"][0]["title"], "Wanted")

        response = self.client.delete(f"/api/users/{user['_id']}/wishlist/{movie['_id']}")
        self.assertEqual(response.get_json()["wishlist"], [])
        response = self.client.delete(f"/api/users/{user['_id']}/wishlist/{movie['_id']}")
        self.assertEqual(response.status_code, 404)

    def test_delete_user(self):
        user = self.register().get_json()
        movie = insert_movie(self.db, "Reviewed", ["Drama"])
        insert_review(self.db, ObjectId(user["_id"]), movie["_id"], 1)
        response = self.client.delete(f"/api/users/{user['_id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["removed"]["reviews"], 1)
        self.assertEqual(self.client.get(f"/api/users/{user['_id']}").status_code, 404)


class TestAdminRoutes(CatalogRouteTestCase):

    def test_dashboards(self):
        insert_movie(self.db, "Popular", ["Drama", "Comedy"], view_count=100)
        niche = insert_movie(self.db, "Niche", ["Drama"], view_count=1)
        user = insert_user(self.db, "critic")
        insert_review(self.db, user["_id"], niche["_id"], 4)

        popular = self.client.get("/api/admin/popular-movies").get_json()
        self.assertEqual(popular[0]["title"], "Popular")

        genres = self.client.get("/api/admin/trending-genres").get_json()
        self.assertEqual(genres, [{"genre": "Drama", "count": 2}, {"genre": "Comedy", "count": 1}])

        activity = self.client.get("/api/admin/user-activity").get_json()
        self.assertEqual(activity["results"][0]["username"], user["username"])
        self.assertEqual(activity["results"][0]["review_count"], 1)
        self.assertNotIn("password", activity["results"][0])

    def test_moderation(self):
        movie = insert_movie(self.db, "Moderated", ["Drama"])
        user = insert_user(self.db, "troll")
        review = insert_review(self.db, user["_id"], movie["_id"], 1)
        insert_review(self.db, ObjectId(), movie["_id"], 5)

        payload = self.client.get("/api/admin/moderate-reviews").get_json()
        self.assertEqual(payload["total"], 2)

        response = self.client.delete(f"/api/admin/reviews/{review['_id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.db["movies"].find_one({"_id": movie["_id"]})["average_rating"], 5.0)
        self.assertEqual(self.client.delete(f"/api/admin/reviews/{review['_id']}").status_code, 404)

    def test_untracked_reports(self):
        self.assertEqual(self.client.get("/api/admin/most-searched-actors").status_code, 501)
        self.assertEqual(self.client.get("/api/admin/user-engagement").status_code, 501)


if __name__ == "__main__":
    unittest.main()
