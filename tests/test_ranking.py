import unittest
from datetime import datetime, timezone

from plugin_catalog.domain.catalog import CatalogEntry
from plugin_catalog.services.ranking import OLDEST, parse_timestamp, rank, recently_updated, trending


def _entry(identifier: str, downloads: int = 0, updated: str = "") -> CatalogEntry:
    return CatalogEntry(
        identifier=identifier,
        category="misc",
        title=identifier.upper(),
        readme="",
        created_at="",
        updated_at=updated,
        description=f"{identifier} plugin",
        link_href=f"/plugins/misc/{identifier}",
        weekly_downloads=downloads,
        icon="default",
        tags=(),
    )


class TestParseTimestamp(unittest.TestCase):
    def test_z_suffix(self):
        self.assertEqual(
            parse_timestamp("2024-06-01T10:00:00.000Z"),
            datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc),
        )

    def test_short_fraction_and_basic_format(self):
        self.assertEqual(
            parse_timestamp("2024-06-01T10:00:00.5Z"),
            datetime(2024, 6, 1, 10, 0, 0, 500000, tzinfo=timezone.utc),
        )
        self.assertEqual(parse_timestamp("20240101T000000Z"), datetime(2024, 1, 1, tzinfo=timezone.utc))

    def test_naive_treated_as_utc(self):
        self.assertEqual(parse_timestamp("2024-01-01"), datetime(2024, 1, 1, tzinfo=timezone.utc))

    def test_unparsable_and_missing(self):
        self.assertIsNone(parse_timestamp("yesterday"))
        self.assertIsNone(parse_timestamp(""))
        self.assertIsNone(parse_timestamp(None))


class TestRanking(unittest.TestCase):
    def test_popular_old_and_unpopular_new_plugins(self):
        a = _entry("a", downloads=100, updated="2024-01-01T00:00:00Z")
        b = _entry("b", downloads=0, updated="2024-06-01T00:00:00Z")
        views = rank([a, b])
        self.assertEqual([e.identifier for e in views.trending], ["a"])
        self.assertEqual([e.identifier for e in views.recently_updated], ["b", "a"])
        self.assertEqual([e.identifier for e in views.all], ["a", "b"])

    def test_recently_updated_stable_on_equal_timestamps(self):
        entries = [
            _entry("first", updated="2024-03-01T00:00:00Z"),
            _entry("newest", updated="2024-05-01T00:00:00Z"),
            _entry("second", updated="2024-03-01T00:00:00Z"),
        ]
        ordered = [e.identifier for e in recently_updated(entries)]
        self.assertEqual(ordered, ["newest", "first", "second"])

    def test_recently_updated_missing_timestamps_sort_oldest(self):
        entries = [
            _entry("broken", updated="not-a-date"),
            _entry("dated", updated="2020-01-01T00:00:00Z"),
            _entry("blank", updated=""),
        ]
        ordered = [e.identifier for e in recently_updated(entries)]
        self.assertEqual(ordered, ["dated", "broken", "blank"])

    def test_recently_updated_non_increasing(self):
        entries = [
            _entry("x", updated="2023-01-01T00:00:00Z"),
            _entry("y", updated="2024-02-01T00:00:00+02:00"),
            _entry("z", updated="2024-02-01T00:00:00Z"),
            _entry("w", updated=""),
        ]
        keys = [parse_timestamp(e.updated_at) or OLDEST for e in recently_updated(entries)]
        self.assertEqual(keys, sorted(keys, reverse=True))

    def test_trending_excludes_zero_and_is_stable(self):
        entries = [
            _entry("zero", downloads=0),
            _entry("tie1", downloads=50),
            _entry("top", downloads=900),
            _entry("tie2", downloads=50),
        ]
        ordered = [e.identifier for e in trending(entries)]
        self.assertEqual(ordered, ["top", "tie1", "tie2"])
        self.assertTrue(all(e.weekly_downloads > 0 for e in trending(entries)))

    def test_views_share_entry_objects(self):
        a = _entry("a", downloads=5, updated="2024-01-01T00:00:00Z")
        b = _entry("b", downloads=7, updated="2023-01-01T00:00:00Z")
        views = rank([a, b])
        self.assertIs(views.trending[0], b)
        self.assertIs(views.recently_updated[0], a)
        self.assertIs(views.all[1], b)

    def test_idempotent(self):
        entries = [
            _entry("a", downloads=3, updated="2024-01-01T00:00:00Z"),
            _entry("b", downloads=3, updated="2024-01-01T00:00:00Z"),
            _entry("c", downloads=9, updated=""),
        ]
        self.assertEqual(rank(entries), rank(list(entries)))

    def test_empty(self):
        views = rank([])
        self.assertEqual(views.trending, ())
        self.assertEqual(views.recently_updated, ())
        self.assertEqual(views.all, ())


if __name__ == "__main__":
    unittest.main()
