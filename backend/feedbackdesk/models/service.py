from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, Text, CheckConstraint
from feedbackdesk.db import Base

class Service(Base):
    """
    A priced feedback tier. Reference data: seeded once, read-only afterwards.
    unit_price is in cents per 500-word block.
    """
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text(), nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    turnaround_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    is_express: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("unit_price > 0", name="ck_services_unit_price_positive"),
        CheckConstraint("turnaround_hours > 0", name="ck_services_turnaround_positive"),
    )
