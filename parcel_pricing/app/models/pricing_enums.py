"""
Pricing enumerations.
"""

import enum


class ServiceType(str, enum.Enum):
    """Shipment service level."""
    REGULAR = "regular"
    EXPRESS = "express"
    SAME_DAY = "same_day"
    NEXT_DAY = "next_day"
    ECONOMY = "economy"


class PricingType(str, enum.Enum):
    """
    Base rate strategy of a pricing rule.
    
    Closed set: the rate calculator handles every member exhaustively.
    """
    WEIGHT = "weight"
    DISTANCE = "distance"
    FLAT = "flat"
    COMBINED = "combined"


class DiscountType(str, enum.Enum):
    """Discount type enumeration."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SERVICE = "free_service"  # Monetary value handled outside the engine


class CustomerType(str, enum.Enum):
    """Customer segment enumeration."""
    REGULAR = "regular"
    CORPORATE = "corporate"
    VIP = "vip"
