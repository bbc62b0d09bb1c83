"""
HTTP layer tests using the Flask test client. The module-level services in
app.py are swapped for the in-memory fixtures.
"""

import pytest

import app as app_module
from services.quotation_service import QuotationService
from utils.units_service import UnitsService

PRICING = {"excavation_rate": 3500, "labour_pct": 0.10, "supervision_pct": 0.15, "max_workers": 1}


@pytest.fixture
def client(monkeypatch, db, catalog, aliases, resolver):
    monkeypatch.setattr(app_module, "db", db)
    monkeypatch.setattr(app_module, "catalog", catalog)
    monkeypatch.setattr(app_module, "aliases", aliases)
    monkeypatch.setattr(app_module, "resolver", resolver)
    monkeypatch.setattr(
        app_module, "quotations", QuotationService(resolver, UnitsService({"pcs": "PC"}), PRICING)
    )
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as c:
        yield c


@pytest.fixture
def stocked(load_rows):
    load_rows("trans_ocean", [{"name": 'PVC Pipe 2" x 3m', "unit": "PC", "rate": 15000}])
    load_rows("fitting_average", [{"name": "PVC Elbow 2", "unit": "PC", "rate": 300}])


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True
    assert body["sources"] == ["trans_ocean", "fitting_average", "simba_pipes", "pipes_average_price"]


def test_items_suggest(client, stocked):
    assert client.get("/items").get_json() == []
    rows = client.get("/items?query=pvc").get_json()
    assert [r["name"] for r in rows] == ["PVC Elbow 2", 'PVC Pipe 2" x 3m']


class TestResolve:
    def test_match(self, client, stocked):
        resp = client.post("/items/resolve", json={"name": "pvc pipe 2 x 3m"})
        assert resp.status_code == 200
        assert resp.get_json() == {"match": {"name": 'PVC Pipe 2" x 3m', "unit": "PC", "rate": 15000}}

    def test_no_match(self, client, stocked):
        resp = client.post("/items/resolve", json={"name": "random unmatched gadget xyz123"})
        assert resp.get_json() == {"match": None}

    def test_garbage_body(self, client):
        resp = client.post("/items/resolve", data="not json", content_type="text/plain")
        assert resp.status_code == 200
        assert resp.get_json() == {"match": None}

    def test_storage_down_is_503(self, client, db):
        db.close()
        resp = client.post("/items/resolve", json={"name": "gate valve"})
        assert resp.status_code == 503
        assert resp.get_json() == {"error": "Catalog storage unavailable"}


class TestQuotes:
    def test_priced(self, client, stocked):
        resp = client.post(
            "/quotes",
            json={"distance": "2 m", "items": [{"name": "pvc elbow 2", "qty": 4, "unit": "pcs"}]},
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["item_count"] == 1
        assert body["items"][0]["matched_name"] == "PVC Elbow 2"
        assert body["items"][0]["amount"] == pytest.approx(1200)
        totals = body["totals"]
        assert totals["material_cost"] == pytest.approx(1200)
        assert totals["excavation_amount"] == pytest.approx(7000)
        assert totals["grand_total"] == pytest.approx(1200 + 7000 + 120 + 180)

    @pytest.mark.parametrize(
        "payload",
        [
            {"items": [{"name": "Tee", "qty": 1, "unit": "PC"}]},
            {"distance": "5", "items": []},
        ],
    )
    def test_invalid_order_is_400(self, client, payload):
        resp = client.post("/quotes", json=payload)
        assert resp.status_code == 400
        assert "error" in resp.get_json()


def test_validate(client):
    body = client.get("/validate").get_json()
    assert body == {"ok": True, "issues": []}


def test_reload_rebuilds_services(client, db, resolver, stocked):
    resp = client.post("/reload")
    assert resp.status_code == 200
    assert resp.get_json()["ok"] is True
    assert app_module.db is not db
    assert app_module.resolver.catalog is app_module.catalog
    # a request that grabbed the old services before the swap still completes
    assert resolver.resolve_item("pvc elbow 2")["name"] == "PVC Elbow 2"
