"""SQLAlchemy model for the maintenance_records table."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text, false, func, text
from sqlalchemy.orm import Mapped, mapped_column
from fleetdesk.models.truck import Base


class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, server_default=text("gen_random_uuid()")
    )
    truck_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("trucks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mechanic_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("mechanics.id", ondelete="SET NULL")
    )
    service_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    date_performed: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    next_service_due: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    parts_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    labor_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="SCHEDULED", server_default="SCHEDULED"
    )
    # Soft delete
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<MaintenanceRecord {self.service_type} truck={self.truck_id} status={self.status}>"
