# backend/services/quotation_service.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from utils import data_loader as dl
from utils.errors import StorageUnavailable
from utils.units_service import UnitsService, parse_distance, to_number
from services.resolver_service import ResolverService

log = logging.getLogger(__name__)


class QuotationService:
    """
    Prices a technician's material list:
      - each item resolved independently against the catalog
      - unresolved items kept with rate 0 and the unit the technician typed
      - technician units mapped to catalog codes only when canonical_units is on
      - excavation, labour and supervision charges added on top
    """

    def __init__(
        self,
        resolver: ResolverService,
        units: Optional[UnitsService] = None,
        pricing: Optional[Dict[str, Any]] = None,
        strict: bool = False,
    ) -> None:
        self.resolver = resolver
        self.units = units or UnitsService()
        self.pricing = dict(dl.get_pricing() if pricing is None else pricing)
        self.strict = strict
        self.canonical_units = bool(self.pricing.get("canonical_units", False))

    # ---------- public API ----------

    def price(self, items: List[Dict[str, Any]], distance: Any = None) -> Dict[str, Any]:
        """
        Returns {items: [...], item_count, totals: {...}}.
        Items are expected already sanitized ({name, qty, unit}).
        """
        workers = max(1, int(self.pricing.get("max_workers") or 1))
        if workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                detailed = list(pool.map(self._price_item, items))
        else:
            detailed = [self._price_item(it) for it in items]

        return {
            "items": detailed,
            "item_count": len(detailed),
            "totals": self._totals(detailed, distance),
        }

    # ---------- internal helpers ----------

    def _price_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        name = str(item.get("name") or "").strip()
        qty = to_number(item.get("qty"))
        unit_fallback = str(item.get("unit") or "").strip()
        if self.canonical_units:
            unit_fallback = self.units.canonical_unit(unit_fallback)

        match: Optional[Dict[str, Any]] = None
        if name:
            try:
                match = self.resolver.resolve_item(name)
            except StorageUnavailable:
                if self.strict:
                    raise
                log.exception("catalog lookup failed for %r; pricing at 0", name)

        unit = (match or {}).get("unit") or unit_fallback or ""
        rate = to_number((match or {}).get("rate"))
        amount = rate * qty if rate and qty else 0.0
        return {
            "name": name,
            "matched_name": (match or {}).get("name"),
            "unit": unit,
            "qty": qty,
            "rate": rate,
            "amount": amount,
        }

    def _totals(self, detailed: List[Dict[str, Any]], distance: Any) -> Dict[str, float]:
        material_cost = sum(it["amount"] for it in detailed)
        distance_qty = parse_distance(distance)
        excavation_rate = to_number(self.pricing.get("excavation_rate"))
        excavation_amount = distance_qty * excavation_rate
        labour_amount = material_cost * to_number(self.pricing.get("labour_pct"))
        supervision_amount = material_cost * to_number(self.pricing.get("supervision_pct"))
        other_charges_cost = excavation_amount + labour_amount + supervision_amount
        return {
            "material_cost": material_cost,
            "distance_qty": distance_qty,
            "excavation_rate": excavation_rate,
            "excavation_amount": excavation_amount,
            "labour_amount": labour_amount,
            "supervision_amount": supervision_amount,
            "other_charges_cost": other_charges_cost,
            "grand_total": material_cost + other_charges_cost,
        }
