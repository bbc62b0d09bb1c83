# backend/app.py
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS

# utils
from utils import data_loader as dl
from utils.db import Database, open_database
from utils.errors import InvalidOrder, StorageUnavailable
from utils.units_service import UnitsService
from utils.validators import validate_order, validate_schema, validate_sources

# services
from services.alias_store import AliasStore
from services.catalog_service import CatalogService
from services.quotation_service import QuotationService
from services.resolver_service import MatchSettings, ResolverService

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# App setup
# -----------------------------------------------------------------------------
app = Flask(__name__)
# Open CORS for the admin console / technician app (tighten in prod if needed)
CORS(app)


def _build_services() -> Tuple[Database, CatalogService, AliasStore, ResolverService, QuotationService]:
    settings = MatchSettings.from_config()
    database = open_database(dl.db_path(), dl.get_sources(), stop_words=settings.stop_words)
    catalog_svc = CatalogService(database, stop_words=settings.stop_words)
    alias_svc = AliasStore(database)
    resolver_svc = ResolverService(catalog_svc, alias_svc, settings)
    quotes_svc = QuotationService(resolver_svc, UnitsService(), dl.get_pricing())
    return database, catalog_svc, alias_svc, resolver_svc, quotes_svc


# Instantiate shared services
db, catalog, aliases, resolver, quotations = _build_services()

# -----------------------------------------------------------------------------
# Error handlers
# -----------------------------------------------------------------------------
@app.errorhandler(InvalidOrder)
def _invalid_order(e: InvalidOrder):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(StorageUnavailable)
def _storage_unavailable(e: StorageUnavailable):
    log.error("storage unavailable: %s", e)
    return jsonify({"error": "Catalog storage unavailable"}), 503


# -----------------------------------------------------------------------------
# JSON API Routes
# -----------------------------------------------------------------------------
@app.get("/health")
def health():
    return jsonify(
        {
            "ok": True,
            "name": "Field Service Quotation API",
            "sources": [s.source_id for s in catalog.sources],
            "endpoints": [
                "GET  /health",
                "POST /reload",
                "GET  /items?query=",
                "POST /items/resolve",
                "POST /quotes",
                "GET  /validate",
            ],
        }
    )


@app.post("/reload")
def reload():
    """
    Clear config caches after you modify JSON files under data/.
    """
    global db, catalog, aliases, resolver, quotations
    dl.reload_all()
    # the old connection is not closed: requests already running still hold
    # the old services and it is released once they drop them
    db, catalog, aliases, resolver, quotations = _build_services()
    return jsonify({"ok": True, "message": "Reloaded config and services"}), 200


@app.get("/items")
def suggest_items():
    """Typeahead over catalog names and learned aliases."""
    query = str(request.args.get("query") or "").strip()
    if not query:
        return jsonify([])
    limit = int(dl.get_matching().get("suggest_limit", 20))
    min_len = int(dl.get_matching().get("suggest_min_token_length", 2))
    return jsonify(catalog.suggest(query, limit=limit, min_token_length=min_len))


@app.post("/items/resolve")
def resolve_item():
    """Resolve one free-text item name: {name} -> {match: {name, unit, rate} | null}."""
    data: Dict[str, Any] = request.get_json(force=True, silent=True) or {}
    return jsonify({"match": resolver.resolve_item(data.get("name"))})


@app.post("/quotes")
def create_quote():
    """
    Price a material list.
    Body: {items: [{name, qty, unit}], distance: "340 m"}
    """
    data = request.get_json(force=True, silent=True)
    order = validate_order(data)
    return jsonify(quotations.price(order["items"], order["distance"])), 200


@app.get("/validate")
def validate():
    """Config and schema validation; helpful during development."""
    sources = dl.get_sources()
    issues = validate_sources(sources)
    if not issues:
        issues = validate_schema(db, sources)
    return jsonify({"ok": not issues, "issues": issues})


# -----------------------------------------------------------------------------
# Entrypoint
# -----------------------------------------------------------------------------
if __name__ == "__main__":
    # Respect PORT env var if present; default 5001 (to avoid 5000 collisions)
    port = int(os.environ.get("PORT", "5001"))
    app.run(host="127.0.0.1", port=port, debug=True)
