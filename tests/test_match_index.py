"""Unit tests for taxonomy.match_index using plain record stand-ins (no database)."""
from __future__ import annotations

import unittest
from types import SimpleNamespace

from taxonomy.match_index import CollisionWarning, MatchIndex, build_index


def _rec(id, category, value, aliases=None, is_active=True):
    return SimpleNamespace(id=id, category=category, value=value, aliases=aliases or [], is_active=is_active)


class TestMatchIndex(unittest.TestCase):
    def setUp(self):
        self.records = [
            _rec(1, "rod_brand", "daiwa", ["达瓦", "DAIWA", "ダイワ"]),
            _rec(2, "rod_brand", "shimano", ["禧玛诺", "西马诺"]),
            _rec(3, "reel_brand", "daiwa", ["达瓦"]),
            _rec(4, "rod_power", "ml", ["Medium Light"]),
            _rec(5, "weather_type", "sunny", ["晴"], is_active=False),
        ]
        self.index = build_index(self.records)

    def test_every_alias_resolves_to_its_record(self):
        for rec in self.records:
            for raw in [rec.value] + rec.aliases:
                with self.subTest(category=rec.category, raw=raw):
                    self.assertEqual(self.index.lookup(rec.category, raw), rec.id)

    def test_lookup_normalizes_input(self):
        self.assertEqual(self.index.lookup("rod_brand", "  Ｄａｉｗａ "), 1)
        self.assertEqual(self.index.lookup("rod_power", "medium-light"), 4)

    def test_categories_are_isolated(self):
        self.assertEqual(self.index.lookup("rod_brand", "达瓦"), 1)
        self.assertEqual(self.index.lookup("reel_brand", "达瓦"), 3)
        self.assertIsNone(self.index.lookup("reel_brand", "shimano"))

    def test_misses(self):
        self.assertIsNone(self.index.lookup("rod_brand", None))
        self.assertIsNone(self.index.lookup("rod_brand", ""))
        self.assertIsNone(self.index.lookup("rod_brand", " - "))
        self.assertIsNone(self.index.lookup("rod_brand", "daiwa pro"))
        self.assertIsNone(self.index.lookup("no_such_category", "daiwa"))

    def test_inactive_records_still_match(self):
        self.assertEqual(self.index.lookup("weather_type", "晴"), 5)
        self.assertNotIn(5, self.index.active_ids)
        self.assertIn(1, self.index.active_ids)

    def test_own_alias_overlap_is_not_a_collision(self):
        # 'DAIWA' and 'daiwa' share a key but belong to the same record
        self.assertEqual(self.index.collisions, [])

    def test_collision_last_inserted_wins_and_is_reported(self):
        index = MatchIndex.build([
            _rec(10, "rod_brand", "abu_garcia", ["Abu"]),
            _rec(11, "rod_brand", "abu", []),
        ])
        self.assertEqual(index.lookup("rod_brand", "abu"), 11)
        self.assertEqual(index.lookup("rod_brand", "Abu Garcia"), 10)
        self.assertEqual(
            index.collisions,
            [CollisionWarning(category="rod_brand", key="abu", kept_id=11, shadowed_id=10)],
        )
        self.assertIn("shadowing metadata 10", str(index.collisions[0]))

    def test_same_key_in_other_category_is_not_a_collision(self):
        index = MatchIndex.build([_rec(1, "rod_brand", "daiwa"), _rec(2, "reel_brand", "daiwa")])
        self.assertEqual(index.collisions, [])

    def test_blank_aliases_are_skipped(self):
        index = MatchIndex.build([_rec(1, "rod_brand", "daiwa", ["", "  ", None, "--"])])
        self.assertEqual(len(index), 1)

    def test_categories_listing(self):
        self.assertEqual(self.index.categories(), ["reel_brand", "rod_brand", "rod_power", "weather_type"])


if __name__ == "__main__":
    unittest.main()
