"""Job record model: the catalog of imported postings."""

from sqlalchemy import Column, String, Integer, DateTime, Text, Index, UniqueConstraint

from jobimporter.models.base import Base, JSONType, UUIDMixin

# Fields replaced on every import of an existing (source, external_job_id)
MUTABLE_FIELDS = (
    "title",
    "company",
    "location",
    "description",
    "url",
    "category",
    "job_type",
    "region",
    "posted_date",
    "raw_payload",
)


class JobRecord(UUIDMixin, Base):
    __tablename__ = "job_records"

    # Dedup key
    source = Column(String(500), nullable=False, index=True)
    external_job_id = Column(String(1000), nullable=False)

    # Core
    title = Column(Text, nullable=False)
    url = Column(Text, nullable=False)

    # Optional fields (NULL when the feed does not provide them); the normalizer
    # truncates bounded ones to these sizes
    company = Column(String(255), index=True)
    location = Column(String(255), index=True)
    description = Column(Text)
    category = Column(String(255), index=True)
    job_type = Column(String(100))
    region = Column(String(255))
    posted_date = Column(DateTime(timezone=True), index=True)

    # Original feed item, verbatim
    raw_payload = Column(JSONType, nullable=False, default=dict)

    # Lifecycle
    imported_at = Column(DateTime(timezone=True), nullable=False)
    last_updated_at = Column(DateTime(timezone=True), nullable=False)
    write_count = Column(Integer, nullable=False, default=1)  # 1 on insert, +1 per replace

    __table_args__ = (
        UniqueConstraint("source", "external_job_id", name="uq_job_source_external_id"),
        Index("idx_job_source_posted", "source", "posted_date"),
    )
