"""
Utilities package for the Field Service Quotation backend.

This package exposes:
- data_loader: loads JSON config (sources, matching, pricing, units), memoized
- db: sqlite connection wrapper + schema bootstrap
- errors: exception taxonomy
- normalizer: item-name comparison keys + size token extraction
- similarity: bigram Dice scoring
- units_service: unit aliases and distance parsing
- validators: order sanitising and config/schema checks
"""

from . import data_loader, db, errors, normalizer, similarity, units_service, validators  # noqa: F401
