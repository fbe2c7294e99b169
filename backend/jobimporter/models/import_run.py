"""Import run model: audit log per feed import execution."""

from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from jobimporter.models.base import Base, UUIDMixin

RUN_STATUSES = ("pending", "processing", "completed", "failed")


class ImportRun(UUIDMixin, Base):
    __tablename__ = "import_runs"

    source_url = Column(String(500), nullable=False, index=True)

    started_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True))
    status = Column(String(20), nullable=False, default="pending")  # pending, processing, completed, failed
    total_fetched = Column(Integer)  # NULL until fetch + parse finished
    new_jobs = Column(Integer, nullable=False, default=0)
    updated_jobs = Column(Integer, nullable=False, default=0)
    failed_jobs_count = Column(Integer, nullable=False, default=0)
    error = Column(Text)

    failed_jobs = relationship(
        "ImportRunFailure",
        back_populates="run",
        order_by="ImportRunFailure.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_run_status_started", "status", "started_at"),
    )

    @property
    def total_imported(self) -> int:
        return (self.new_jobs or 0) + (self.updated_jobs or 0)


class ImportRunFailure(Base):
    """One failed item of a run, in the order failures were recorded."""

    __tablename__ = "import_run_failures"

    position = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(Uuid(as_uuid=True), ForeignKey("import_runs.id", ondelete="CASCADE"), nullable=False, index=True)
    external_job_id = Column(String(1000))  # external id, or a raw identifier when unresolvable
    reason = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    run = relationship("ImportRun", back_populates="failed_jobs")
