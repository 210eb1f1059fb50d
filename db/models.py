from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Float,
    DateTime,
    Text,
    JSON,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


# =========================
# Curated taxonomy
# =========================

class Metadata(Base):
    """A canonical taxonomy entry (brand, rod power, length unit, weather, scene tag).

    `value` is the stable machine key within a category; `label` is what users
    see and what gets denormalized onto linked rows. `aliases` are match-only
    spellings and are never displayed.
    """

    __tablename__ = "metadata"
    __table_args__ = (UniqueConstraint("category", "value", name="uq_metadata_category_value"),)

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(64), nullable=False, index=True)  # e.g., 'rod_brand', 'weather_type'
    value = Column(String(128), nullable=False)
    label = Column(String(128), nullable=False)
    aliases = Column(JSON, default=list)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    extra = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Metadata {self.category}:{self.value} id={self.id}>"


# =========================
# User records carrying reconcilable fields
# =========================

class Rod(Base):
    __tablename__ = "rod"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), nullable=False)
    length = Column(Float, nullable=True)
    note = Column(Text, nullable=True)

    # (free text, metadata link) pairs; text is denormalized from the label at link time
    brand = Column(String(40), nullable=True)
    brand_metadata_id = Column(Integer, ForeignKey("metadata.id", ondelete="RESTRICT"), nullable=True, index=True)
    power = Column(String(20), nullable=True)
    power_metadata_id = Column(Integer, ForeignKey("metadata.id", ondelete="RESTRICT"), nullable=True, index=True)
    length_unit = Column(String(16), nullable=True)
    length_unit_metadata_id = Column(Integer, ForeignKey("metadata.id", ondelete="RESTRICT"), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    brand_metadata = relationship("Metadata", foreign_keys=[brand_metadata_id])
    power_metadata = relationship("Metadata", foreign_keys=[power_metadata_id])
    length_unit_metadata = relationship("Metadata", foreign_keys=[length_unit_metadata_id])

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Rod id={self.id} name={self.name} brand={self.brand}>"


class Reel(Base):
    __tablename__ = "reel"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), nullable=False)
    note = Column(Text, nullable=True)

    brand = Column(String(40), nullable=True)
    brand_metadata_id = Column(Integer, ForeignKey("metadata.id", ondelete="RESTRICT"), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    brand_metadata = relationship("Metadata", foreign_keys=[brand_metadata_id])

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Reel id={self.id} name={self.name} brand={self.brand}>"


class Trip(Base):
    __tablename__ = "trip"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(120), nullable=True)
    started_at = Column(DateTime, nullable=True)

    weather_type = Column(String(40), nullable=True)
    weather_metadata_id = Column(Integer, ForeignKey("metadata.id", ondelete="RESTRICT"), nullable=True, index=True)
    weather_temperature_text = Column(String(40), nullable=True)
    weather_wind_text = Column(String(40), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    weather_metadata = relationship("Metadata", foreign_keys=[weather_metadata_id])

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Trip id={self.id} weather={self.weather_type}>"


class Combo(Base):
    """A rod + reel setup. Scene tags live in two places: the legacy free-text
    array `scene_tags` (labels plus user-typed tags) and structured links in
    `combo_scene_metadata`.
    """

    __tablename__ = "combo"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), nullable=False)
    rod_id = Column(Integer, ForeignKey("rod.id", ondelete="SET NULL"), nullable=True, index=True)
    reel_id = Column(Integer, ForeignKey("reel.id", ondelete="SET NULL"), nullable=True, index=True)
    scene_tags = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    scene_links = relationship("ComboSceneMetadata", back_populates="combo", cascade="all, delete-orphan")
    scene_metadata = relationship("Metadata", secondary="combo_scene_metadata", viewonly=True)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Combo id={self.id} name={self.name}>"


class ComboSceneMetadata(Base):
    __tablename__ = "combo_scene_metadata"
    __table_args__ = (UniqueConstraint("combo_id", "metadata_id", name="uq_combo_scene_metadata"),)

    id = Column(Integer, primary_key=True)
    combo_id = Column(Integer, ForeignKey("combo.id", ondelete="CASCADE"), nullable=False, index=True)
    metadata_id = Column(Integer, ForeignKey("metadata.id", ondelete="RESTRICT"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    combo = relationship("Combo", back_populates="scene_links")
    # `metadata` is reserved on declarative classes
    record = relationship("Metadata")

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<ComboSceneMetadata combo={self.combo_id} metadata={self.metadata_id}>"


# =========================
# Operations bookkeeping
# =========================

class Job(Base):
    __tablename__ = "job"

    id = Column(Integer, primary_key=True)
    name = Column(String(256), nullable=False)
    status = Column(String(32), default="pending", index=True)
    progress = Column(Integer, default=0)
    payload = Column(JSON, default=dict)
    # Set while a job holds its advisory lock; cleared on completion. Unique so
    # only one running job per key can exist.
    lock_key = Column(String(128), nullable=True, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Job id={self.id} name={self.name} status={self.status}>"


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True)
    resource_type = Column(String(64), nullable=False)
    resource_id = Column(Integer, nullable=True, index=True)
    field = Column(String(128), nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    actor = Column(String(128), nullable=True)
    ts = Column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<AuditLog {self.resource_type}:{self.resource_id} {self.field}>"
