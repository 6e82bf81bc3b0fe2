"""
Unit tests for similar movies and recommendation strategies.
"""

import unittest
from datetime import datetime

from bson import ObjectId

from catalog_api.api_recommendations.recommendations_functions import (
    find_similar_movies,
    month_bounds,
    personalized_recommendations,
    top_movies_of_month,
    top_rated_movies,
    trending_movies,
)
from catalog_api.api_reviews.reviews_functions import recompute_movie_rating
from catalog_api.errors import NotFound, ValidationFailure
from catalog_data import insert_movie, insert_person, insert_review, insert_user
from stubs import StubDatabase


class TestSimilarMovies(unittest.TestCase):

    def setUp(self):
        self.db = StubDatabase()
        self.movies = self.db["movies"]
        self.director = insert_person(self.db, "D1", roles=("Director",))
        self.alpha = insert_movie(self.db, "Alpha", ["Drama"], self.director["_id"])
        self.beta = insert_movie(self.db, "Beta", ["Comedy"], self.director["_id"])
        insert_review(self.db, ObjectId(), self.alpha["_id"], 3)
        insert_review(self.db, ObjectId(), self.alpha["_id"], 5)
        insert_review(self.db, ObjectId(), self.beta["_id"], 2)
        recompute_movie_rating(self.alpha["_id"], self.movies, self.db["reviews"])
        recompute_movie_rating(self.beta["_id"], self.movies, self.db["reviews"])

    def test_shared_director_scenario(self):
        insert_movie(self.db, "Gamma", ["Horror"], ObjectId(), average_rating=5.0)

        similar = find_similar_movies(self.alpha["_id"], self.movies, 5)

        self.assertEqual([movie["title"] for movie in similar], ["Beta"])
        self.assertAlmostEqual(similar[0]["average_rating"], 2.0, delta=1e-9)
        alpha = self.movies.find_one({"_id": self.alpha["_id"]})
        self.assertAlmostEqual(alpha["average_rating"], 4.0, delta=1e-9)

    def test_results_exclude_source_and_respect_limit(self):
        for index in range(8):
            insert_movie(self.db, f"Drama {index}", ["Drama"], ObjectId(), average_rating=index / 2)

        similar = find_similar_movies(str(self.alpha["_id"]), self.movies, 3)

        self.assertEqual(len(similar), 3)
        ratings = [movie["average_rating"] for movie in similar]
        self.assertEqual(ratings, sorted(ratings, reverse=True))
        for movie in similar:
            self.assertNotEqual(movie["_id"], self.alpha["_id"])
            self.assertTrue("Drama" in movie["genres"] or movie["director"] == self.director["_id"])

    def test_ties_break_by_id(self):
        first = insert_movie(self.db, "Tie A", ["Drama"], ObjectId(), average_rating=4.5)
        second = insert_movie(self.db, "Tie B", ["Drama"], ObjectId(), average_rating=4.5)

        similar = find_similar_movies(self.alpha["_id"], self.movies, 2)

        self.assertEqual([movie["_id"] for movie in similar], sorted([first["_id"], second["_id"]]))

    def test_unknown_or_malformed_id_gives_empty_list(self):
        self.assertEqual(find_similar_movies(ObjectId(), self.movies), [])
        self.assertEqual(find_similar_movies("nope", self.movies), [])

    def test_missing_director_does_not_match_other_missing_directors(self):
        lonely = insert_movie(self.db, "Lonely", ["Western"], None)
        insert_movie(self.db, "Also lonely", ["Musical"], None)

        self.assertEqual(find_similar_movies(lonely["_id"], self.movies), [])

    def test_limit_below_one_is_rejected(self):
        with self.assertRaises(ValidationFailure):
            find_similar_movies(self.alpha["_id"], self.movies, 0)


class TestPersonalizedRecommendations(unittest.TestCase):

    def setUp(self):
        self.db = StubDatabase()
        self.movies = self.db["movies"]
        self.users = self.db["users"]
        insert_movie(self.db, "Laugh", ["Comedy"], average_rating=3.0)
        insert_movie(self.db, "Laugh More", ["Comedy", "Romance"], average_rating=4.5)
        insert_movie(self.db, "Cry", ["Drama"], average_rating=5.0)
        insert_movie(self.db, "Scream", ["Horror"], average_rating=1.0)

    def test_only_favourite_genres_are_returned(self):
        user = insert_user(self.db, "alice", ["Comedy", "Horror"])

        movies = personalized_recommendations(user["_id"], self.users, self.movies)

        self.assertEqual([movie["title"] for movie in movies], ["Laugh More", "Laugh", "Scream"])
        for movie in movies:
            self.assertTrue({"Comedy", "Horror"} & set(movie["genres"]))

    def test_no_favourite_genres_gives_empty_list(self):
        user = insert_user(self.db, "bob", [])
        self.assertEqual(personalized_recommendations(user["_id"], self.users, self.movies), [])

    def test_unknown_user_raises_not_found(self):
        with self.assertRaises(NotFound):
            personalized_recommendations(ObjectId(), self.users, self.movies)

    def test_limit_bounds_results(self):
        user = insert_user(self.db, "carol", ["Comedy", "Drama", "Horror"])
        self.assertEqual(len(personalized_recommendations(user["_id"], self.users, self.movies, 2)), 2)


class TestRankings(unittest.TestCase):

    def setUp(self):
        self.db = StubDatabase()
        self.movies = self.db["movies"]

    def test_trending_orders_by_views_then_rating(self):
        insert_movie(self.db, "Quiet", ["Drama"], average_rating=5.0, view_count=1)
        insert_movie(self.db, "Loud", ["Drama"], average_rating=2.0, view_count=50)
        insert_movie(self.db, "Loud and good", ["Drama"], average_rating=4.0, view_count=50)
        insert_movie(self.db, "Middle", ["Drama"], average_rating=3.0, view_count=10)

        trending = trending_movies(self.movies)

        self.assertEqual([movie["title"] for movie in trending], ["Loud and good", "Loud", "Middle", "Quiet"])
        pairs = [(movie["view_count"], movie["average_rating"]) for movie in trending]
        self.assertEqual(pairs, sorted(pairs, reverse=True))

    def test_empty_catalog_gives_empty_rankings(self):
        self.assertEqual(trending_movies(self.movies), [])
        self.assertEqual(top_rated_movies(self.movies), [])

    def test_top_rated(self):
        insert_movie(self.db, "Okay", ["Drama"], average_rating=3.0)
        insert_movie(self.db, "Great", ["Drama"], average_rating=4.8)
        self.assertEqual([movie["title"] for movie in top_rated_movies(self.movies, 1)], ["Great"])

    def test_top_movies_of_month(self):
        insert_movie(self.db, "March", ["Drama"], average_rating=3.0, release_date=datetime(2024, 3, 10))
        insert_movie(self.db, "April", ["Drama"], average_rating=5.0, release_date=datetime(2024, 4, 1))

        movies = top_movies_of_month(self.movies, datetime(2024, 3, 31, 23, 0))

        self.assertEqual([movie["title"] for movie in movies], ["March"])

    def test_month_bounds_rolls_over_year(self):
        self.assertEqual(month_bounds(datetime(2023, 12, 5)), (datetime(2023, 12, 1), datetime(2024, 1, 1)))


if __name__ == "__main__":
    unittest.main()
