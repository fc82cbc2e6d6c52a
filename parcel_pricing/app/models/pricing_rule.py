"""
Pricing Rule database model.

Stores a pricing rule as one document: searchable scalars as columns,
areas, tiers, special services and discounts as JSON.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, JSON, Enum, Text
from sqlalchemy.sql import func
from parcel_pricing.app.db.session import Base
from parcel_pricing.app.models.pricing_enums import ServiceType, PricingType


class PricingRule(Base):
    """
    Pricing Rule model.
    
    `version` is SQLAlchemy's version counter: every UPDATE is issued with
    `WHERE version = <loaded version>` and a lost race surfaces as
    StaleDataError at flush.
    
    JSON columns are replaced, never mutated in place, so the ORM sees
    every change.
    """
    __tablename__ = "pricing_rules"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String(20), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    
    # Selection criteria
    service_type = Column(Enum(ServiceType, values_callable=lambda e: [m.value for m in e]), nullable=False, index=True)
    origin_area = Column(JSON, nullable=False)  # {province, city, district?}
    destination_area = Column(JSON, nullable=False)
    branch = Column(String(64), nullable=True, index=True)  # None = all branches
    applicable_customer_types = Column(JSON, nullable=False)
    
    # Pricing
    pricing_type = Column(Enum(PricingType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    base_price = Column(Numeric(14, 2), nullable=False, default=0)
    minimum_price = Column(Numeric(14, 2), nullable=False, default=0)
    weight_tiers = Column(JSON, nullable=False, default=list)
    distance_tiers = Column(JSON, nullable=False, default=list)
    special_services = Column(JSON, nullable=False, default=list)
    discounts = Column(JSON, nullable=False, default=list)
    tax_percentage = Column(Numeric(7, 4), nullable=False)
    insurance_percentage = Column(Numeric(7, 4), nullable=False)
    volumetric_divisor = Column(Integer, nullable=False)
    
    # Validity
    effective_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    
    # Concurrency
    version = Column(Integer, nullable=False)
    
    # Audit
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    __mapper_args__ = {"version_id_col": version}
    
    def __repr__(self):
        return f"<PricingRule(code='{self.code}', name='{self.name}', version={self.version})>"
