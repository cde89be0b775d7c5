"""SQLAlchemy ORM models for stored estimates"""

from sqlalchemy import Column, BigInteger, Float, DateTime, Text, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class NetworthEstimate(Base):
    """Latest net worth estimate per subject (one row, upserted)"""

    __tablename__ = "networth_estimate"

    subject_id = Column(Text, primary_key=True)

    # Layer-1
    layer1_low = Column(BigInteger, nullable=False)
    layer1_mid = Column(BigInteger, nullable=False)
    layer1_high = Column(BigInteger, nullable=False)
    layer1_confidence = Column(Float, nullable=False)
    layer1_signals = Column(JSON, nullable=False)

    # Layer-2 (or its deterministic fallback)
    final_low = Column(BigInteger, nullable=False)
    final_high = Column(BigInteger, nullable=False)
    final_confidence = Column(Float, nullable=False)
    band_label = Column(Text, nullable=False)
    reasoning = Column(Text, nullable=False)
    disclaimer = Column(Text, nullable=False)
    layer = Column(Text, nullable=False)

    computed_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
