"""
Audit trail of pricing rule changes.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from sqlalchemy.sql import func
from parcel_pricing.app.db.session import Base


class AuditLog(Base):
    """
    One row per successful rule mutation.
    
    `rule_version` is the version the rule reached with this change, so
    the trail of a rule reads as an unbroken 1, 2, 3... sequence.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_rule_code_version", "rule_code", "rule_version"),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(100), nullable=False, index=True)
    rule_code = Column(String(32), nullable=True)
    rule_version = Column(Integer, nullable=True)
    
    # X-Actor header of the request; None when not supplied
    actor_username = Column(String(100), nullable=True)
    
    # Tier bounds, service codes, discount names touched by the change
    meta_data = Column(JSON, nullable=True)
    
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog {self.action} {self.rule_code}@v{self.rule_version}>"
