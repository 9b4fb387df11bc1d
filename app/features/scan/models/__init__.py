"""
Scan models package.
"""
from app.features.scan.models.scan_record import ScanRecord

__all__ = ["ScanRecord"]
