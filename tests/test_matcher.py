import unittest

from lib.rekordbox.matcher import build_owned_index, match_track
from lib.rekordbox.models import OwnedIndexEntry


def _index(*keys: str):
    return tuple(OwnedIndexEntry(owned_id=f"t{i}", normalized_key=k) for i, k in enumerate(keys, 1))


class MatcherTests(unittest.TestCase):
    def test_exact_key_gives_full_confidence(self):
        index = _index("daft punk one more time")
        result = match_track("Daft Punk", "One More Time", index)
        self.assertEqual(result.owned_id, "t1")
        self.assertEqual(result.confidence, 100)
        self.assertTrue(result.owned)

    def test_unrelated_track_with_strict_threshold_is_no_match(self):
        index = _index("daft punk one more time")
        result = match_track("Completely Different Artist", "Totally Other Song", index, threshold=0.3)
        self.assertIsNone(result.owned_id)
        self.assertEqual(result.confidence, 0)

    def test_missing_artist_or_title_is_noop(self):
        index = _index("daft punk one more time")
        for artist, title in [(None, "One More Time"), ("Daft Punk", None), ("", "x"), ("x", "")]:
            result = match_track(artist, title, index)
            self.assertIsNone(result.owned_id)
            self.assertEqual(result.confidence, 0)

    def test_empty_index_is_no_match(self):
        result = match_track("Daft Punk", "One More Time", ())
        self.assertIsNone(result.owned_id)
        self.assertEqual(result.confidence, 0)

    def test_small_typo_still_matches_below_full_confidence(self):
        index = _index("artist b bright lights")
        result = match_track("Artist B", "Bright Light", index)
        self.assertEqual(result.owned_id, "t1")
        self.assertGreater(result.confidence, 80)
        self.assertLess(result.confidence, 100)

    def test_best_candidate_wins_and_ties_go_to_first(self):
        index = _index("artist b bright lights", "daft punk one more time", "daft punk one more time")
        result = match_track("Daft Punk", "One More Time", index)
        self.assertEqual(result.owned_id, "t2")

    def test_confidence_is_monotonic_in_similarity(self):
        index = _index("daft punk one more time")
        exact = match_track("Daft Punk", "One More Time", index, threshold=1.0)
        close = match_track("Daft Punk", "One More Tme", index, threshold=1.0)
        partial = match_track("Daft Punk", "One", index, threshold=1.0)
        far = match_track("Daft Pnk", "Once Mere Tim", index, threshold=1.0)
        self.assertGreater(exact.confidence, close.confidence)
        self.assertGreater(close.confidence, partial.confidence)
        self.assertGreaterEqual(close.confidence, far.confidence)

    def test_subset_of_owned_key_is_not_full_confidence(self):
        index = _index("daft punk one more time")
        result = match_track("Daft Punk", "One", index)
        self.assertLess(result.confidence, 100)

    def test_other_song_by_same_artist_scores_low(self):
        index = _index("daft punk one more time")
        other = match_track("Daft Punk", "Around the World", index, threshold=1.0)
        self.assertLess(other.confidence, 60)

    def test_matcher_does_not_mutate_index(self):
        index = [OwnedIndexEntry(owned_id="t1", normalized_key="daft punk one more time")]
        snapshot = list(index)
        match_track("Daft Punk", "One More Time", index)
        self.assertEqual(index, snapshot)

    def test_build_owned_index_from_rows(self):
        index = build_owned_index([
            {"id": "a", "normalized_key": "x y"},
            {"id": "b", "normalized_key": None},
        ])
        self.assertEqual(index, (OwnedIndexEntry("a", "x y"), OwnedIndexEntry("b", "")))


if __name__ == "__main__":
    unittest.main()
