from sqlalchemy import JSON, Column, String, event

from app.platform.db.base import BaseModel
from app.platform.exceptions import StoreError
from app.platform.utils.url_validator import MAX_URL_LENGTH


class ScanRecord(BaseModel):
    """
    One persisted scan of a URL.

    Insert-only: rows are created once and never updated. The legacy columns
    (summary, results, test_engine, lighthouse_results) are only populated by
    rows imported from the previous flat document layout; they are folded into
    the current shape at read time.
    """
    __tablename__ = "test_results"

    url = Column(String(MAX_URL_LENGTH), nullable=False, index=True)

    # Nullable only for legacy rows, inferred on read
    kind = Column(String(32), nullable=True)

    # Current shape
    accessibility_summary = Column(JSON, nullable=True)
    accessibility_detail = Column(JSON, nullable=True)
    performance_scores = Column(JSON, nullable=True)
    performance_metrics = Column(JSON, nullable=True)
    engine_info = Column(JSON, nullable=True)

    # Legacy shape
    summary = Column(JSON, nullable=True)
    results = Column(JSON, nullable=True)
    test_engine = Column(JSON, nullable=True)
    lighthouse_results = Column(JSON, nullable=True)


@event.listens_for(ScanRecord, "before_update")
def _reject_update(mapper, connection, target):
    raise StoreError(f"Scan record {target.id} is immutable")
