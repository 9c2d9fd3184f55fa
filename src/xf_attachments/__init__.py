"""
xf-attachments - Attachment downloader for xenforo-dl exports

This package finds the attachment blocks embedded in xenforo-dl text exports
and downloads each referenced file into an ``attachments/`` directory next to
the export.

Main components:
- extract_blocks: Finds (declared name, URL) pairs in export text
- choose_output_filename: Picks the on-disk name for an attachment
- unique_output_path: Avoids overwriting existing files
- Downloader: Streams one URL to disk with redirect and timeout handling
- AttachmentRunner: Ties it all together for a directory tree

Usage:
    import asyncio
    from pathlib import Path
    from xf_attachments import AttachmentRunner, build_request_headers

    runner = AttachmentRunner(Path("exports"), headers=build_request_headers(cookie="xf_session=..."))
    summary = asyncio.run(runner.run())
"""

from .config import Settings, build_request_headers, normalize_delay_ms
from .downloader import Downloader
from .extractor import extract_blocks
from .models import AttachmentBlock, RetrievalOutcome, RunSummary
from .naming import choose_output_filename, safe_filename
from .runner import AttachmentRunner
from .utils import find_txt_files, unique_output_path

__all__ = [
    'AttachmentRunner',
    'Downloader',
    'AttachmentBlock',
    'RetrievalOutcome',
    'RunSummary',
    'Settings',
    'build_request_headers',
    'normalize_delay_ms',
    'extract_blocks',
    'choose_output_filename',
    'safe_filename',
    'find_txt_files',
    'unique_output_path',
]

__version__ = '1.0.0'
