"""
Run report models.

A :class:`RunReport` is what a migration run hands back to its caller:
overall status, per data type progress, and the exact place a failed run
stopped so the operator can resume from there.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    """Migration run status enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class DataTypeStatus(str, Enum):
    """Status of one data type pass."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class FileFailure(BaseModel):
    """A file resource that could not be relocated."""
    data_type: str
    destination_key: str
    file_location: str
    reason: str


class DataTypeProgress(BaseModel):
    """Progress information for a single data type pass."""
    data_type: str
    status: DataTypeStatus = DataTypeStatus.PENDING
    chunk_size: int = 0
    total_rows: Optional[int] = None
    chunks_completed: int = 0
    rows_exported: int = 0
    rows_imported: int = 0
    rows_already_mapped: int = 0
    rows_skipped: int = 0
    unresolved_references: int = 0
    has_keyless_rows: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def progress_percentage(self) -> float:
        if not self.total_rows:
            return 100.0 if self.status == DataTypeStatus.COMPLETED else 0.0
        covered = min(self.chunks_completed * self.chunk_size, self.total_rows)
        return round((covered / self.total_rows) * 100, 2)


class RunReport(BaseModel):
    """Outcome of a migration run."""
    status: RunStatus = RunStatus.PENDING
    sequence: List[str] = Field(default_factory=list)
    data_types: Dict[str, DataTypeProgress] = Field(default_factory=dict)
    failed_data_type: Optional[str] = None
    failed_offset: Optional[int] = None
    last_error: Optional[str] = None
    file_failures: List[FileFailure] = Field(default_factory=list)
    dry_run: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def keyless_data_types(self) -> List[str]:
        """
        Data types that imported rows without a natural key.

        Such rows are inserted on every run; re-running these types against
        a populated destination duplicates them.
        """
        return [name for name, p in self.data_types.items() if p.has_keyless_rows]

    def progress(self, data_type: str) -> DataTypeProgress:
        if data_type not in self.data_types:
            self.data_types[data_type] = DataTypeProgress(data_type=data_type)
        return self.data_types[data_type]

    def summary(self) -> str:
        lines = [f"[{self.status.value.upper()}] {len(self.sequence)} data type(s)"]
        for name in self.sequence:
            p = self.data_types.get(name)
            if p is None:
                continue
            lines.append(
                f"  {name}: {p.status.value}, {p.rows_imported} imported, "
                f"{p.rows_already_mapped} already mapped, {p.rows_skipped} skipped"
            )
        if self.failed_data_type:
            lines.append(
                f"  Failed at {self.failed_data_type} offset {self.failed_offset}: "
                f"{self.last_error}"
            )
        if self.keyless_data_types:
            lines.append(
                "  Not safe to re-run against this destination (rows without "
                "natural key): " + ", ".join(self.keyless_data_types)
            )
        return "\n".join(lines)
