"""
Data models for xf-attachments.

This module defines typed data structures for the attachment references found
in export files and for the results of a download run. Dataclasses give clear
structure, type hints, and easy JSON serialization for run reports.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class AttachmentBlock:
    """
    One attachment reference extracted from an export text file.

    Attributes:
        declared_name: The filename recorded in the export (already trimmed).
                       May be unusable, e.g. a generic "index.php".
        url: The remote URL the attachment is served from.

    Example:
        block = AttachmentBlock(
            declared_name="stage-plot.png",
            url="https://forum.example.com/attachments/stage-plot-png.1234/"
        )
    """
    declared_name: str
    url: str

    def to_dict(self) -> dict:
        """Convert the block to a dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class RetrievalOutcome:
    """
    Result of one download attempt.

    A successful attempt has ``error`` set to None; the written file at
    ``path`` is its only payload. A failed attempt carries a human-readable
    cause and leaves nothing at ``path``.
    """
    source_file: Path
    block: AttachmentBlock
    path: Path
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "source_file": str(self.source_file),
            "declared_name": self.block.declared_name,
            "url": self.block.url,
            "path": str(self.path),
            "ok": self.ok,
            "error": self.error,
        }


@dataclass
class RunSummary:
    """
    Aggregated counters for a whole run.

    Attributes:
        files_scanned: Number of .txt files discovered under the root
        files_unreadable: Files that could not be read and were skipped
        matches_found: Attachment blocks found across all files
        downloaded: Blocks downloaded successfully
        failed: Blocks whose download failed
        outcomes: One RetrievalOutcome per attempted block, in run order
    """
    files_scanned: int = 0
    files_unreadable: int = 0
    matches_found: int = 0
    downloaded: int = 0
    failed: int = 0
    outcomes: List[RetrievalOutcome] = field(default_factory=list)

    def record(self, outcome: RetrievalOutcome):
        """Add an outcome and bump the matching counter."""
        self.outcomes.append(outcome)
        if outcome.ok:
            self.downloaded += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict:
        """Convert the summary to a dictionary for the JSON run report."""
        return {
            "files_scanned": self.files_scanned,
            "files_unreadable": self.files_unreadable,
            "matches_found": self.matches_found,
            "downloaded": self.downloaded,
            "failed": self.failed,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
