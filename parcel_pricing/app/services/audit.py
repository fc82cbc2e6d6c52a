"""
Audit logging service for pricing rule administration.

Provides a single trail of who changed which rule, and at which version.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from parcel_pricing.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    PRICING_RULE_CREATED = "PRICING_RULE_CREATED"
    PRICING_RULE_ACTIVATED = "PRICING_RULE_ACTIVATED"
    PRICING_RULE_DEACTIVATED = "PRICING_RULE_DEACTIVATED"
    PRICING_RULE_UPDATED = "PRICING_RULE_UPDATED"
    PRICING_RULE_DELETED = "PRICING_RULE_DELETED"
    
    WEIGHT_TIER_ADDED = "WEIGHT_TIER_ADDED"
    WEIGHT_TIER_REMOVED = "WEIGHT_TIER_REMOVED"
    DISTANCE_TIER_ADDED = "DISTANCE_TIER_ADDED"
    DISTANCE_TIER_REMOVED = "DISTANCE_TIER_REMOVED"
    
    SPECIAL_SERVICE_ADDED = "SPECIAL_SERVICE_ADDED"
    SPECIAL_SERVICE_REMOVED = "SPECIAL_SERVICE_REMOVED"
    DISCOUNT_ADDED = "DISCOUNT_ADDED"
    DISCOUNT_REMOVED = "DISCOUNT_REMOVED"
    DISCOUNT_REDEEMED = "DISCOUNT_REDEEMED"


async def log_event(
    db: AsyncSession,
    action: str,
    rule_code: Optional[str] = None,
    rule_version: Optional[int] = None,
    actor_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an administrative event to the audit log.
    
    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        rule_code: Code of the pricing rule touched
        rule_version: Rule version after the change
        actor_username: Username of actor (None for system actions)
        metadata: Additional context as JSON
        
    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_username=actor_username,
        action=action,
        rule_code=rule_code,
        rule_version=rule_version,
        meta_data=metadata
    )
    
    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)
    
    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    rule_code: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.
    
    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
    
    if rule_code:
        query = query.where(AuditLog.rule_code == rule_code)
    
    if action:
        query = query.where(AuditLog.action == action)
    
    query = query.limit(limit)
    
    result = await db.execute(query)
    return list(result.scalars().all())
