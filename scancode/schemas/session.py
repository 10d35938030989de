"""
==============================================================================
Scan Session Schemas
==============================================================================

Response schemas for scan session endpoints.

==============================================================================
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ScannedCode(BaseModel):
    """A decoded barcode."""
    text: str
    format: str


class SessionStatus(BaseModel):
    """Snapshot of a scan session."""
    id: str
    state: str
    results: List[ScannedCode] = Field(default_factory=list)
    count: int = Field(ge=0)
    last_scanned: Optional[str] = None
    scan_attempts: int = Field(ge=0)
    decode_faults: int = Field(ge=0)
    retry_count: int = Field(ge=0)
    profile: Optional[str] = None
    hint: Optional[str] = None
    error: Optional[Dict[str, Any]] = None
    created_at: str
    debug_log: Optional[List[str]] = None


class SessionResponse(BaseModel):
    """Session status wrapper."""
    success: bool = Field(default=True)
    session: SessionStatus


class ScanReport(BaseModel):
    """Committed codes of a finished session."""
    success: bool = Field(default=True)
    session_id: str
    results: List[str]
    count: int = Field(ge=0)
    headline: str
    copy_text: str

    @classmethod
    def create(cls, session_id: str, results: List[str]) -> "ScanReport":
        """Build the report, including the copy-all text."""
        count = len(results)
        headline = "Barcode Scanned!" if count == 1 else f"{count} Barcodes Scanned!"
        copy_text = "\n".join(
            f"Barcode {index}: {value}" for index, value in enumerate(results, start=1)
        )
        return cls(
            session_id=session_id,
            results=results,
            count=count,
            headline=headline,
            copy_text=copy_text
        )
