"""
Enumerations for product unit handling.

This module contains enums shared by models and services:
- UnitRole: Role a measurement unit plays on a product or variant
"""

from enum import Enum

from src.utils.constants import ROLE_PRODUCTION, ROLE_PURCHASE, ROLE_SALE


class UnitRole(str, Enum):
    """
    Role of a unit attached to a product or variant.

    Values are the tags stored on product documents.

    Values:
        SALE: Unit the product is sold in (at most one)
        PRODUCTION: Unit the product is produced in (at most one)
        PURCHASE: Unit the product is bought in from one supplier (one per supplier)
    """

    SALE = ROLE_SALE
    PRODUCTION = ROLE_PRODUCTION
    PURCHASE = ROLE_PURCHASE
