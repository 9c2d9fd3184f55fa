"""End-to-end tests for the run orchestrator (no network access required)."""

import asyncio

import httpx
import pytest

import xf_attachments.runner as runner_module
from xf_attachments.config import build_request_headers
from xf_attachments.downloader import Downloader
from xf_attachments.errors import FileReadFailure, RootDirectoryError
from xf_attachments.runner import AttachmentRunner

PREVIEW = "[data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD]"


def export_block(name, url):
    return f"{name}\n{PREVIEW}\n{name}\n[{url}]\n"


def serve(files):
    """Handler serving a dict of path -> bytes, 404 for anything else."""
    def handler(request):
        body = files.get(request.url.path)
        if body is None:
            return httpx.Response(404)

        async def stream():
            yield body

        return httpx.Response(200, content=stream())
    return handler


def run(root, handler, delay_ms=1200, headers=None, **kwargs):
    """Run the orchestrator against a fake transport, recording pauses."""
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            runner = AttachmentRunner(
                root,
                delay_ms=delay_ms,
                headers=headers,
                downloader=Downloader(headers=headers, client=client),
                sleep=fake_sleep,
                show_progress=False,
                **kwargs,
            )
            return await runner.run()

    return asyncio.run(_run()), sleeps


class TestRun:
    def test_two_blocks_downloaded_with_delay(self, tmp_path):
        thread = tmp_path / "thread_1"
        thread.mkdir()
        (thread / "thread.txt").write_text(
            export_block("first.jpg", "https://forum.test/a/1")
            + export_block("second.png", "https://forum.test/a/2"),
            encoding="utf-8",
        )

        summary, sleeps = run(tmp_path, serve({"/a/1": b"one", "/a/2": b"two"}))

        attachments = thread / "attachments"
        assert sorted(p.name for p in attachments.iterdir()) == ["first.jpg", "second.png"]
        assert (attachments / "first.jpg").read_bytes() == b"one"
        assert (attachments / "second.png").read_bytes() == b"two"
        assert sleeps == [1.2, 1.2]
        assert summary.files_scanned == 1
        assert summary.matches_found == 2
        assert summary.downloaded == 2
        assert summary.failed == 0

    def test_duplicate_names_get_counters(self, tmp_path):
        (tmp_path / "t.txt").write_text(
            export_block("photo.jpg", "https://forum.test/a/1")
            + export_block("photo.jpg", "https://forum.test/a/2"),
            encoding="utf-8",
        )

        summary, _ = run(tmp_path, serve({"/a/1": b"one", "/a/2": b"two"}), delay_ms=0)

        attachments = tmp_path / "attachments"
        assert (attachments / "photo.jpg").read_bytes() == b"one"
        assert (attachments / "photo-1.jpg").read_bytes() == b"two"
        assert [o.path.name for o in summary.outcomes] == ["photo.jpg", "photo-1.jpg"]

    def test_rerun_does_not_overwrite(self, tmp_path):
        (tmp_path / "t.txt").write_text(export_block("photo.jpg", "https://forum.test/a/1"), encoding="utf-8")
        handler = serve({"/a/1": b"one"})

        run(tmp_path, handler, delay_ms=0)
        run(tmp_path, handler, delay_ms=0)

        names = sorted(p.name for p in (tmp_path / "attachments").iterdir())
        assert names == ["photo-1.jpg", "photo.jpg"]

    def test_failure_does_not_stop_the_run(self, tmp_path):
        (tmp_path / "t.txt").write_text(
            export_block("gone.jpg", "https://forum.test/missing")
            + export_block("here.jpg", "https://forum.test/a/1"),
            encoding="utf-8",
        )

        summary, sleeps = run(tmp_path, serve({"/a/1": b"one"}))

        assert summary.failed == 1
        assert summary.downloaded == 1
        assert summary.outcomes[0].error == "HTTP 404"
        assert not (tmp_path / "attachments" / "gone.jpg").exists()
        assert (tmp_path / "attachments" / "here.jpg").exists()
        # a pause follows failed attempts too
        assert len(sleeps) == 2

    def test_generic_name_resolved_from_url(self, tmp_path):
        url = "https://forum.test/attachments/index.php?media=42-photo.jpg.67890"
        (tmp_path / "t.txt").write_text(export_block("index.php", url), encoding="utf-8")

        summary, _ = run(tmp_path, serve({"/attachments/index.php": b"img"}), delay_ms=0)

        assert summary.downloaded == 1
        assert (tmp_path / "attachments" / "42-photo.jpg").read_bytes() == b"img"

    def test_file_without_matches_creates_nothing(self, tmp_path):
        (tmp_path / "notes.txt").write_text("no attachments here\n", encoding="utf-8")

        summary, sleeps = run(tmp_path, serve({}))

        assert summary.files_scanned == 1
        assert summary.matches_found == 0
        assert not (tmp_path / "attachments").exists()
        assert sleeps == []

    def test_zero_delay_skips_sleep(self, tmp_path):
        (tmp_path / "t.txt").write_text(export_block("a.jpg", "https://forum.test/a/1"), encoding="utf-8")

        _, sleeps = run(tmp_path, serve({"/a/1": b"one"}), delay_ms=0)

        assert sleeps == []

    def test_ignored_directories_skipped(self, tmp_path):
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "t.txt").write_text(
            export_block("a.jpg", "https://forum.test/a/1"), encoding="utf-8"
        )

        summary, _ = run(tmp_path, serve({"/a/1": b"one"}))

        assert summary.files_scanned == 0
        assert not (tmp_path / "node_modules" / "attachments").exists()

    def test_unreadable_file_skipped(self, tmp_path, monkeypatch):
        bad = tmp_path / "a_bad.txt"
        bad.write_text("x", encoding="utf-8")
        (tmp_path / "b_good.txt").write_text(export_block("a.jpg", "https://forum.test/a/1"), encoding="utf-8")

        real_read = runner_module.read_text_file

        def flaky_read(path):
            if path == bad:
                raise FileReadFailure(path, PermissionError("denied"))
            return real_read(path)

        monkeypatch.setattr(runner_module, "read_text_file", flaky_read)

        summary, _ = run(tmp_path, serve({"/a/1": b"one"}), delay_ms=0)

        assert summary.files_scanned == 2
        assert summary.files_unreadable == 1
        assert summary.downloaded == 1

    def test_missing_root(self, tmp_path):
        with pytest.raises(RootDirectoryError):
            run(tmp_path / "does-not-exist", serve({}))

    def test_root_is_a_file(self, tmp_path):
        f = tmp_path / "file.txt"
        f.write_text("x")
        with pytest.raises(RootDirectoryError):
            run(f, serve({}))

    def test_overlong_name_does_not_stop_the_run(self, tmp_path):
        (tmp_path / "t.txt").write_text(
            export_block("a" * 300 + ".jpg", "https://forum.test/a/1")
            + export_block("b.jpg", "https://forum.test/a/2"),
            encoding="utf-8",
        )

        summary, sleeps = run(tmp_path, serve({"/a/1": b"one", "/a/2": b"two"}))

        assert summary.failed == 1
        assert summary.downloaded == 1
        assert summary.outcomes[0].error
        assert (tmp_path / "attachments" / "b.jpg").read_bytes() == b"two"
        assert len(sleeps) == 2

    def test_malformed_redirect_does_not_stop_the_run(self, tmp_path):
        (tmp_path / "t.txt").write_text(
            export_block("moved.jpg", "https://forum.test/moved")
            + export_block("here.jpg", "https://forum.test/a/1"),
            encoding="utf-8",
        )
        files = serve({"/a/1": b"one"})

        def handler(request):
            if request.url.path == "/moved":
                return httpx.Response(302, headers={"Location": "http://[broken/x"})
            return files(request)

        summary, _ = run(tmp_path, handler, delay_ms=0)

        assert summary.failed == 1
        assert summary.downloaded == 1
        assert "Invalid redirect location" in summary.outcomes[0].error
        assert not (tmp_path / "attachments" / "moved.jpg").exists()
        assert (tmp_path / "attachments" / "here.jpg").read_bytes() == b"one"

    def test_unencodable_cookie_fails_each_block(self, tmp_path):
        (tmp_path / "t.txt").write_text(
            export_block("a.jpg", "https://forum.test/a/1")
            + export_block("b.jpg", "https://forum.test/a/2"),
            encoding="utf-8",
        )
        headers = build_request_headers(cookie="xf_session=café☃")

        summary, sleeps = run(tmp_path, serve({"/a/1": b"one", "/a/2": b"two"}), headers=headers)

        assert summary.matches_found == 2
        assert summary.failed == 2
        assert summary.downloaded == 0
        assert list((tmp_path / "attachments").iterdir()) == []
        assert len(sleeps) == 2
