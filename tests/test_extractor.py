import unittest

from lib.youtube.extractor import (
    ExtractedTrackInfo,
    Pattern,
    extract_track_info,
    match_pattern,
)


class ExtractTrackInfoTests(unittest.TestCase):
    def test_artist_title_with_bracket_tag(self):
        info = extract_track_info("Daft Punk - One More Time [Official Video]")
        self.assertEqual(info, ExtractedTrackInfo(artist="Daft Punk", title="One More Time", remix=None))

    def test_remix_by_artist(self):
        info = extract_track_info("One More Time (Radio Edit remix) by Daft Punk")
        self.assertEqual(info, ExtractedTrackInfo(artist="Daft Punk", title="One More Time", remix="Radio Edit"))

    def test_remix_without_artist(self):
        info = extract_track_info("Strings of Life (Kerri Chandler Remix)")
        self.assertEqual(info.artist, None)
        self.assertEqual(info.title, "Strings of Life")
        self.assertEqual(info.remix, "Kerri Chandler")

    def test_artist_title_remix(self):
        info = extract_track_info("Moodymann - Shades of Jae (Theo Parrish Remix)")
        self.assertEqual(info, ExtractedTrackInfo(artist="Moodymann", title="Shades of Jae", remix="Theo Parrish"))

    def test_generic_fallback_keeps_parenthesised_suffix(self):
        info = extract_track_info("Floorplan - Never Grow Old (Official Audio)")
        self.assertEqual(info.artist, "Floorplan")
        self.assertEqual(info.title, "Never Grow Old (Official Audio)")
        self.assertIsNone(info.remix)

    def test_leftmost_hyphen_splits_artist(self):
        info = extract_track_info("Jay-Z - Song Title")
        self.assertEqual(info.artist, "Jay")
        self.assertEqual(info.title, "Z - Song Title")

    def test_pattern_priority_order(self):
        self.assertIs(match_pattern("A - B [Live]")[0], Pattern.ARTIST_TITLE_BRACKET)
        self.assertIs(match_pattern("B (X Remix) by A")[0], Pattern.REMIX_BY_ARTIST)
        self.assertIs(match_pattern("A - B (X Remix)")[0], Pattern.ARTIST_TITLE_REMIX)
        self.assertIs(match_pattern("A - B (Live)")[0], Pattern.GENERIC)
        self.assertIsNone(match_pattern("Just A Title"))

    def test_description_fallback(self):
        info = extract_track_info("Windowlicker [HQ]", "Some text\nArtist: Aphex Twin\nLabel: Warp")
        self.assertEqual(info.artist, "Aphex Twin")
        self.assertEqual(info.title, "Windowlicker")

    def test_description_by_prefix(self):
        info = extract_track_info("Xtal", "by: Aphex Twin")
        self.assertEqual(info.artist, "Aphex Twin")
        self.assertEqual(info.title, "Xtal")

    def test_no_pattern_no_description_uses_trimmed_title(self):
        info = extract_track_info("  Untitled Jam  ", "no credits here")
        self.assertEqual(info, ExtractedTrackInfo(artist=None, title="Untitled Jam", remix=None))

    def test_empty_and_whitespace_titles(self):
        for raw in ["", "   ", None]:
            info = extract_track_info(raw, "Artist: Someone")
            self.assertEqual(info, ExtractedTrackInfo(artist=None, title="", remix=None))

    def test_title_is_never_none(self):
        for raw in ["-", "- x", "x -", "[tag]", "(a remix)", "—"]:
            info = extract_track_info(raw, "by: Someone")
            self.assertIsInstance(info.title, str)


if __name__ == "__main__":
    unittest.main()
