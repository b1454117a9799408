import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression, func

from ..db.base import Base


class Candidate(Base):
    __tablename__ = "candidates"
    __table_args__ = (
        Index("ix_candidates_tenant_email", "tenant_id", "email"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    job_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    # --- Declared (resume) data ---
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    linkedin_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_file: Mapped[str | None] = mapped_column(String(255), nullable=True)
    skills: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    work_history: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # --- Enrichment ---
    enrichment: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    enrichment_status: Mapped[str] = mapped_column(String(32), server_default="pending", nullable=False)
    open_to_work: Mapped[bool] = mapped_column(Boolean, server_default=expression.false(), nullable=False)
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # --- Scores ---
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    priority: Mapped[str | None] = mapped_column(String(16), nullable=True)
    open_to_work_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    skill_match_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    job_stability_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    engagement_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    # --- Company consistency / hireability ---
    company_difference: Mapped[str | None] = mapped_column(Text, nullable=True)
    company_difference_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    hireability_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    hireability_factors: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    potential_to_join: Mapped[str | None] = mapped_column(String(16), nullable=True)

    insights: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=expression.true(), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), server_default=func.now(), onupdate=func.now()
    )
