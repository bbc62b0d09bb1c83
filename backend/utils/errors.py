# backend/utils/errors.py
from __future__ import annotations


class QuotationError(Exception):
    """Base class for errors raised by the quotation backend."""


class StorageUnavailable(QuotationError):
    """The catalog or alias backend failed mid-resolution."""


class AliasWriteFailed(QuotationError):
    """An alias upsert did not go through (duplicate race, locked db, ...)."""


class InvalidOrder(QuotationError):
    """An order payload is missing fields or has no usable items."""
