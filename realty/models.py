# realty/models.py
"""SQLAlchemy ORM models for the locally owned reference data.

Catalog records (the listings themselves) are not stored here; they live in
the remote catalog service and are only referenced by identifier. `Agent`
carries two derived columns, `total_listings` and `rating`, which are
corrected by the reconciliation jobs.
"""
import uuid
from sqlalchemy import Column, Integer, String, Text, Numeric, TIMESTAMP, ForeignKey, func, Index
from sqlalchemy.orm import relationship
from .db import Base


def _uuid():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(30))
    role = Column(String(20), nullable=False, default="USER")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class Agent(Base):
    __tablename__ = "agents"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True)
    license_number = Column(String(100), unique=True)
    bio = Column(Text)
    experience_years = Column(Integer, nullable=False, default=0)
    specializations = Column(Text)
    rating = Column(Numeric(3, 2), nullable=False, default=0)
    total_listings = Column(Integer, nullable=False, default=0)
    profile_picture_url = Column(String(500))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship(User, lazy="joined")

    @property
    def name(self):
        return self.user.name if self.user else None

    @property
    def email(self):
        return self.user.email if self.user else None


class City(Base):
    __tablename__ = "cities"
    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False)
    country = Column(String(100), default="Bulgaria")
    latitude = Column(Numeric(10, 8))
    longitude = Column(Numeric(11, 8))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class PropertyType(Base):
    __tablename__ = "property_types"
    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text)


class Inquiry(Base):
    __tablename__ = "inquiries"
    id = Column(String(36), primary_key=True, default=_uuid)
    property_id = Column(String(36), nullable=False, index=True)
    agent_id = Column(String(36), ForeignKey("agents.id"))
    contact_name = Column(String(100), nullable=False)
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(30))
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="NEW")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

Index("idx_cities_name", City.name)
Index("idx_inquiries_agent", Inquiry.agent_id)
