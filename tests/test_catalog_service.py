"""
Tests for the catalog source adapter over sqlite.
"""

import pytest

from services.catalog_service import CatalogEntry, CatalogSource, load_sources
from utils.errors import StorageUnavailable


def _source(catalog, source_id):
    return next(s for s in catalog.sources if s.source_id == source_id)


class TestSources:
    def test_priority_follows_config_order(self, catalog):
        assert [s.source_id for s in catalog.sources] == [
            "trans_ocean",
            "fitting_average",
            "simba_pipes",
            "pipes_average_price",
        ]

    def test_column_names_per_source(self):
        by_id = {s.source_id: s for s in load_sources()}
        assert by_id["trans_ocean"].name_column == "item_name"
        assert by_id["simba_pipes"].name_column == "description"
        assert by_id["simba_pipes"].unit_column == "unit"

    def test_from_config_defaults_rate_column(self):
        src = CatalogSource.from_config(
            {"id": "x", "table": "x", "name_column": "n", "unit_column": "u"}
        )
        assert src.rate_column == "average_with_vat"


class TestExactKeys:
    def test_whitespace_and_quote_differences(self, catalog, load_rows):
        load_rows("trans_ocean", [{"name": 'PVC Pipe 2" x 3m', "unit": "PC", "rate": 15000}])
        entry = catalog.search_by_exact_keys({"pvc pipe 2 x 3m"})
        assert entry == CatalogEntry('PVC Pipe 2" x 3m', "PC", 15000.0, "trans_ocean")

    def test_double_spaces_in_catalog(self, catalog, load_rows):
        load_rows("simba_pipes", [{"name": "HDPE  Pipe   32mm", "unit": "M", "rate": 900}])
        entry = catalog.search_by_exact_keys({"hdpe pipe 32mm"})
        assert entry.name == "HDPE  Pipe   32mm"
        assert entry.source_id == "simba_pipes"

    def test_first_source_wins(self, catalog, load_rows):
        load_rows("pipes_average_price", [{"name": "Gate Valve 2", "unit": "PC", "rate": 1}])
        load_rows("fitting_average", [{"name": "Gate Valve 2", "unit": "PC", "rate": 2}])
        entry = catalog.search_by_exact_keys({"gate valve 2"})
        assert entry.source_id == "fitting_average"
        assert entry.rate == 2.0

    def test_no_keys_or_no_hit(self, catalog, load_rows):
        load_rows("trans_ocean", [{"name": "Gate Valve 2", "unit": "PC", "rate": 1}])
        assert catalog.search_by_exact_keys(set()) is None
        assert catalog.search_by_exact_keys({"", "gate valve 3"}) is None

    def test_rate_coercion(self, catalog, load_rows):
        load_rows("trans_ocean", [{"name": "Teflon Tape", "unit": None, "rate": None}])
        entry = catalog.search_by_exact_keys({"teflon tape"})
        assert entry.to_dict() == {"name": "Teflon Tape", "unit": None, "rate": 0.0}

    def test_storage_failure(self, catalog, db):
        db.close()
        with pytest.raises(StorageUnavailable):
            catalog.search_by_exact_keys({"anything"})


class TestNameLike:
    ROWS = [
        {"name": "Tee Connector 2''", "unit": "PC", "rate": 450},
        {"name": "Tee Connector 12''", "unit": "PC", "rate": 900},
        {"name": "Tee Reducer 2 x 3/4", "unit": "PC", "rate": 500},
        {"name": "Elbow 2''", "unit": "PC", "rate": 300},
    ]

    def test_all_patterns_required(self, catalog, load_rows):
        load_rows("fitting_average", self.ROWS)
        src = _source(catalog, "fitting_average")
        rows = catalog.search_by_name_like(src, ["connector", "tee"])
        assert [r.name for r in rows] == ["Tee Connector 2''", "Tee Connector 12''"]

    def test_any_pattern_when_relaxed(self, catalog, load_rows):
        load_rows("fitting_average", self.ROWS)
        src = _source(catalog, "fitting_average")
        rows = catalog.search_by_name_like(src, ["conector", "elbow"], match_all=False)
        assert [r.name for r in rows] == ["Elbow 2''"]

    def test_size_must_be_standalone(self, catalog, load_rows):
        load_rows("fitting_average", self.ROWS)
        src = _source(catalog, "fitting_average")
        rows = catalog.search_by_name_like(src, ["tee"], sizes={"2"})
        assert [r.name for r in rows] == ["Tee Connector 2''", "Tee Reducer 2 x 3/4"]

    def test_every_size_required(self, catalog, load_rows):
        load_rows("fitting_average", self.ROWS)
        src = _source(catalog, "fitting_average")
        rows = catalog.search_by_name_like(src, ["tee"], sizes={"2", "3/4"})
        assert [r.name for r in rows] == ["Tee Reducer 2 x 3/4"]

    def test_limit(self, catalog, load_rows):
        load_rows("fitting_average", self.ROWS)
        src = _source(catalog, "fitting_average")
        assert len(catalog.search_by_name_like(src, ["tee"], limit=1)) == 1

    def test_like_wildcards_are_literal(self, catalog, load_rows):
        load_rows("fitting_average", [{"name": "Valve 100% brass", "unit": "PC", "rate": 1}])
        src = _source(catalog, "fitting_average")
        assert catalog.search_by_name_like(src, ["a_v"]) == []
        assert len(catalog.search_by_name_like(src, ["100%"])) == 1


class TestSuggest:
    def test_union_of_sources_and_aliases(self, catalog, load_rows, aliases):
        load_rows("trans_ocean", [{"name": "PVC Pipe 2", "unit": "PC", "rate": 1}])
        load_rows("simba_pipes", [{"name": "PVC Elbow 2", "unit": "PC", "rate": 1}])
        load_rows("pipes_average_price", [{"name": "PVC Pipe 2", "unit": "PC", "rate": 3}])
        aliases.upsert("pvc glue", "PVC Solvent Cement")
        rows = catalog.suggest("pvc")
        assert rows == [
            {"name": "PVC Elbow 2", "unit": "PC"},
            {"name": "PVC Pipe 2", "unit": "PC"},
            {"name": "PVC Solvent Cement", "unit": None},
        ]

    def test_any_token_matches_and_stop_words_ignored(self, catalog, load_rows):
        load_rows("trans_ocean", [
            {"name": "Socket 1/2", "unit": "PC", "rate": 1},
            {"name": "Threaded Rod", "unit": "PC", "rate": 1},
        ])
        assert [r["name"] for r in catalog.suggest("threaded socket")] == ["Socket 1/2"]

    def test_limit_and_empty(self, catalog, load_rows):
        load_rows("trans_ocean", [{"name": f"Clip {i}", "unit": "PC", "rate": 1} for i in range(30)])
        assert len(catalog.suggest("clip", limit=20)) == 20
        assert catalog.suggest("   ") == []
        assert catalog.suggest("!!") == []


def test_iter_names_skips_blanks(catalog, load_rows):
    load_rows("simba_pipes", [
        {"name": " Pipe A ", "unit": "M", "rate": 1},
        {"name": "   ", "unit": "M", "rate": 1},
        {"name": None, "unit": "M", "rate": 1},
    ])
    assert list(catalog.iter_names(_source(catalog, "simba_pipes"))) == ["Pipe A"]
