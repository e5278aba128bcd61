from sqlalchemy import Integer, String, DateTime, ForeignKey, func, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column
from maintenix.db.base import Base
from datetime import datetime


class Machine(Base):
    __tablename__ = "machines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)
    model_id: Mapped[int] = mapped_column(ForeignKey("machine_models.id"), nullable=False)
    # ruta completa de la ubicacion, p.ej. "/Planta A/Linea 1"
    location: Mapped[str] = mapped_column(String(1000), nullable=False)
    location_id: Mapped[int | None] = mapped_column(ForeignKey("locations.id"), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    properties: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("ix_machines_company", "company_id"),
        Index("ix_machines_model", "model_id"),
        Index("ix_machines_location", "location_id"),
    )
