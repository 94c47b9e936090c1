"""
SQLAlchemy models for the security event log
"""
from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase

from ..utils.timeutils import utcnow


class Base(DeclarativeBase):
    pass


class SecurityEvent(Base):
    """
    Append-only log of authentication security events

    Rows are never updated. They are removed only by age-based retention
    cleanup. Timestamps are naive UTC.
    """
    __tablename__ = 'security_events'

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    email = Column(String(255), nullable=True, index=True)
    event_type = Column(String(50), nullable=False, index=True)
    success = Column(Boolean, default=True, nullable=False, index=True)
    ip_address = Column(String(45))  # IPv4/IPv6
    user_agent = Column(String(500))
    details = Column(JSON)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Composite indexes for the detector and threshold queries
    __table_args__ = (
        Index('idx_security_event_type_time', 'event_type', 'timestamp'),
        Index('idx_security_event_type_success_time', 'event_type', 'success', 'timestamp'),
        Index('idx_security_event_ip_time', 'ip_address', 'timestamp'),
    )

    def __repr__(self):
        return f"<SecurityEvent(id={self.id}, event_type='{self.event_type}', email='{self.email}')>"
