"""
Insert one scan record in the legacy flat layout (summary/results/test_engine)
so the read-time normalization can be checked against a real database.

Usage:
    python scripts/seed_legacy_record.py [url]
"""
import asyncio
import sys
from datetime import datetime, timezone

from app.features.scan.models.scan_record import ScanRecord
from app.platform.db.session import SessionLocal, init_db

LEGACY_VIOLATION = {
    "id": "image-alt",
    "impact": "critical",
    "tags": ["cat.text-alternatives", "wcag2a", "wcag111"],
    "description": "Ensures <img> elements have alternate text or a role of none or presentation",
    "help": "Images must have alternate text",
    "helpUrl": "https://dequeuniversity.com/rules/axe/4.9/image-alt",
    "nodes": [
        {
            "html": '<img src="/logo.png">',
            "target": ["img"],
            "failureSummary": "Fix any of the following:\n  Element does not have an alt attribute",
            "any": [],
            "all": [],
            "none": [],
        }
    ],
}


async def seed_legacy_record(url: str):
    await init_db()
    async with SessionLocal() as session:
        record = ScanRecord(
            url=url,
            created_at=datetime.now(timezone.utc),
            summary={"violations": 1, "passes": 9, "incomplete": 0, "inapplicable": 12, "score": 90},
            results={"violations": [LEGACY_VIOLATION], "passes": [], "incomplete": [], "inapplicable": []},
            test_engine={"name": "axe-core", "version": "4.7.2"},
        )
        session.add(record)
        await session.commit()
        print(f"Legacy record {record.id} added for {url}")


if __name__ == "__main__":
    asyncio.run(seed_legacy_record(sys.argv[1] if len(sys.argv) > 1 else "https://legacy-site.com"))
