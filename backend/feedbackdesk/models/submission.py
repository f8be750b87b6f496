from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, CheckConstraint, Index
from feedbackdesk.db import Base


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )
    service_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("services.id", ondelete="RESTRICT"), index=True, nullable=False
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str | None] = mapped_column(Text(), nullable=True)      # inline text
    filename: Mapped[str | None] = mapped_column(Text(), nullable=True)     # storage key of an uploaded paper
    word_count: Mapped[int] = mapped_column(Integer, nullable=False)
    prompt_instructions: Mapped[str] = mapped_column(Text(), nullable=False)
    additional_instructions: Mapped[str | None] = mapped_column(Text(), nullable=True)

    total_price: Mapped[int] = mapped_column(Integer, nullable=False)  # cents, fixed at creation
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)  # see enums.SubmissionStatus

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    feedback: Mapped[str | None] = mapped_column(Text(), nullable=True)

    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)  # e.g. pi_...
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="unpaid")

    __table_args__ = (
        CheckConstraint("word_count > 0", name="ck_submissions_word_count_positive"),
        CheckConstraint("total_price > 0", name="ck_submissions_total_price_positive"),
        CheckConstraint("content IS NOT NULL OR filename IS NOT NULL", name="ck_submissions_has_content"),
        CheckConstraint(
            "status IN ('pending_approval','approved','paid','in_progress','completed','rejected')",
            name="ck_submissions_status_valid",
        ),
        Index("ix_submissions_user_status", "user_id", "status"),
    )
