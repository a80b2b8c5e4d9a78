import uuid
from sqlalchemy import Column, String, DateTime, Uuid, func
from sqlalchemy.orm import relationship
from bomkit.db.base import Base

class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    products = relationship("Product", back_populates="tenant", cascade="all, delete-orphan")
    materials = relationship("Material", back_populates="tenant", cascade="all, delete-orphan")
