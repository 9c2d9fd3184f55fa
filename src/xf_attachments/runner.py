"""
Run orchestration: export files in, attachment files out.

For every .txt export below the root directory:

    read -> extract blocks -> for each block:
        choose filename -> allocate path -> download -> pause

Everything runs strictly one after another. No two downloads are ever in
flight, and a pause follows every attempt whether it succeeded or not.

Output structure:
    some/thread/
        thread.txt          # xenforo-dl export
        attachments/
            photo.jpg       # one file per attachment block
            photo-1.jpg     # same name seen again
"""

import asyncio
import logging
from pathlib import Path
from typing import AbstractSet, Awaitable, Callable, List, Mapping, Optional

from tqdm import tqdm

from .config import (
    ATTACHMENTS_DIRNAME,
    DEFAULT_DELAY_MS,
    IGNORED_DIRECTORIES,
    build_request_headers,
)
from .downloader import Downloader
from .errors import FileReadFailure, RetrievalError, RootDirectoryError
from .extractor import extract_blocks
from .models import AttachmentBlock, RetrievalOutcome, RunSummary
from .naming import choose_output_filename
from .utils import find_txt_files, read_text_file, unique_output_path

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class AttachmentRunner:
    """
    Downloads the attachments referenced by all exports under a directory.

    Usage:
        runner = AttachmentRunner(Path("exports"), headers=build_request_headers(cookie="xf_session=..."))
        summary = asyncio.run(runner.run())
    """

    def __init__(
        self,
        root_dir: Path,
        headers: Optional[Mapping[str, str]] = None,
        delay_ms: int = DEFAULT_DELAY_MS,
        downloader: Optional[Downloader] = None,
        sleep: SleepFunc = asyncio.sleep,
        ignored_dirs: AbstractSet[str] = IGNORED_DIRECTORIES,
        show_progress: bool = True,
    ):
        self.root_dir = Path(root_dir)
        self.headers = headers if headers is not None else build_request_headers()
        self.delay_ms = delay_ms
        self.downloader = downloader
        self.sleep = sleep
        self.ignored_dirs = ignored_dirs
        self.show_progress = show_progress

    def discover(self) -> List[Path]:
        """Validate the root directory and list the export files below it."""
        if not self.root_dir.is_dir():
            raise RootDirectoryError(self.root_dir)
        return find_txt_files(self.root_dir, self.ignored_dirs)

    async def run(self) -> RunSummary:
        """Main entry point: discover exports, download every attachment, return the totals.

        Raises:
            RootDirectoryError: If the root directory is missing or not a directory
        """
        txt_files = self.discover()
        summary = RunSummary(files_scanned=len(txt_files))

        if not txt_files:
            logger.info("No .txt files found under %s", self.root_dir)
            return summary

        logger.info("Found %d .txt files under %s", len(txt_files), self.root_dir)

        async with (self.downloader or Downloader(self.headers)) as downloader:
            with tqdm(total=len(txt_files), desc="Scanning exports", disable=not self.show_progress) as pbar:
                for txt_file in txt_files:
                    await self.process_file(txt_file, summary, downloader)
                    pbar.update(1)

        logger.info(
            "Run complete: %d files, %d matches, %d downloaded, %d failed",
            summary.files_scanned, summary.matches_found, summary.downloaded, summary.failed,
        )
        return summary

    async def process_file(self, txt_file: Path, summary: RunSummary, downloader: Downloader):
        """Download every attachment referenced by one export file."""
        try:
            content = read_text_file(txt_file)
        except FileReadFailure as e:
            logger.warning("%s, skipping", e)
            summary.files_unreadable += 1
            return

        blocks = extract_blocks(content)
        if not blocks:
            return

        summary.matches_found += len(blocks)
        attachments_dir = txt_file.parent / ATTACHMENTS_DIRNAME
        try:
            attachments_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Could not create %s: %s", attachments_dir, e)
            for block in blocks:
                summary.record(RetrievalOutcome(txt_file, block, attachments_dir, error=str(e)))
            return

        logger.info("%s: %d attachments", txt_file, len(blocks))

        for block in blocks:
            try:
                outcome = await self.download_block(block, txt_file, attachments_dir, downloader)
            finally:
                await self.pause()
            summary.record(outcome)

    async def download_block(
        self,
        block: AttachmentBlock,
        txt_file: Path,
        attachments_dir: Path,
        downloader: Downloader,
    ) -> RetrievalOutcome:
        """Resolve the output path for one block and download it.

        Any failure is returned as a failed outcome; nothing here aborts the run.
        """
        base_name = choose_output_filename(block.declared_name, block.url)
        output_path = attachments_dir / base_name

        try:
            output_path = unique_output_path(attachments_dir, base_name)
        except OSError as e:
            logger.error("Failed: %s: could not allocate %s: %s", block.url, output_path, e)
            return RetrievalOutcome(txt_file, block, output_path, error=f"Could not allocate {output_path}: {e}")

        try:
            await downloader.download_file(block.url, output_path)
        except RetrievalError as e:
            logger.error("Failed: %s: %s", block.url, e)
            return RetrievalOutcome(txt_file, block, output_path, error=str(e))

        logger.info("Downloaded: %s -> %s", block.url, output_path)
        return RetrievalOutcome(txt_file, block, output_path)

    async def pause(self):
        """Wait delay_ms between two downloads; a delay of 0 or less skips the wait."""
        if self.delay_ms > 0:
            await self.sleep(self.delay_ms / 1000)
