from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from osint_tracker.utils import utc_now


class Base(DeclarativeBase):
    pass


class InvestigationRun(Base):
    __tablename__ = "investigation_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_json: Mapped[str] = mapped_column(Text, default="{}", nullable=False)
    policy_version: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    findings_hash: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    stats_json: Mapped[str] = mapped_column(Text, default="{}", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    results: Mapped[list[RunResult]] = relationship(back_populates="run", cascade="all, delete-orphan")
    relatives: Mapped[list[RunRelative]] = relationship(back_populates="run", cascade="all, delete-orphan")
    addresses: Mapped[list[RunAddress]] = relationship(back_populates="run", cascade="all, delete-orphan")


class RunResult(Base):
    __tablename__ = "run_results"
    __table_args__ = (Index("ix_run_results_run_classification", "run_id", "classification"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(ForeignKey("investigation_runs.id"), nullable=False)
    locator_key: Mapped[str] = mapped_column(String(512), default="", nullable=False)
    locator: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    source: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    title: Mapped[str] = mapped_column(Text, default="", nullable=False)
    tier: Mapped[str] = mapped_column(String(16), default="none", nullable=False)
    score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    classification: Mapped[str] = mapped_column(String(16), nullable=False)
    keyword_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    factors_json: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    finding_json: Mapped[str] = mapped_column(Text, default="{}", nullable=False)

    run: Mapped[InvestigationRun] = relationship(back_populates="results")


class RunRelative(Base):
    __tablename__ = "run_relatives"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(ForeignKey("investigation_runs.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False)
    relationship_type: Mapped[str] = mapped_column(String(32), default="unknown", nullable=False)
    tier: Mapped[str] = mapped_column(String(16), default="unverified", nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    link_json: Mapped[str] = mapped_column(Text, default="{}", nullable=False)

    run: Mapped[InvestigationRun] = relationship(back_populates="relatives")


class RunAddress(Base):
    __tablename__ = "run_addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(ForeignKey("investigation_runs.id"), nullable=False)
    address: Mapped[str] = mapped_column(String(512), nullable=False)
    normalized_address: Mapped[str] = mapped_column(String(512), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    match_json: Mapped[str] = mapped_column(Text, default="{}", nullable=False)

    run: Mapped[InvestigationRun] = relationship(back_populates="addresses")
