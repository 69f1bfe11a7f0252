"""Tests for concurrent ingestion and cross-file deduplication."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from sessionmeter.usage import ingestor
from sessionmeter.usage.ingestor import UsageLoader, load_usage_events, parse_usage_file

from conftest import assistant_line


class TestParseUsageFile:
    def test_valid_lines(self, tmp_path: Path, write_jsonl):
        path = write_jsonl(
            tmp_path / "s.jsonl",
            [
                assistant_line("2026-02-19T10:00:00Z"),
                assistant_line("2026-02-19T10:05:00Z"),
            ],
        )
        events = parse_usage_file(path)
        assert len(events) == 2

    def test_skips_malformed_and_empty_lines(self, tmp_path: Path, write_jsonl):
        path = write_jsonl(
            tmp_path / "s.jsonl",
            [
                "",
                "not json",
                '{"timestamp": "2026-02-19T10:00:00Z", "usage": {"input_tokens": 1}',
                assistant_line("2026-02-19T10:00:00Z"),
                "   ",
                '"just a string"',
                assistant_line("bad timestamp"),
            ],
        )
        events = parse_usage_file(path)
        assert len(events) == 1

    def test_invalid_utf8_line_skipped(self, tmp_path: Path):
        path = tmp_path / "s.jsonl"
        path.write_bytes(b'{"timestamp": "\xff"}\n{"timestamp": "2026-02-19T10:00:00Z"}\n')
        events = parse_usage_file(path)
        assert len(events) == 1

    def test_no_trailing_newline(self, tmp_path: Path):
        path = tmp_path / "s.jsonl"
        path.write_bytes(b'{"timestamp": "2026-02-19T10:00:00Z"}')
        assert len(parse_usage_file(path)) == 1

    def test_missing_file(self, tmp_path: Path):
        assert parse_usage_file(tmp_path / "nonexistent.jsonl") == []


class TestUsageLoader:
    def test_dedup_across_files(self, data_dir: Path, write_jsonl):
        dup = assistant_line("2026-02-19T10:00:00Z", message_id="msg_1", request_id="req_1")
        write_jsonl(data_dir / "a" / "one.jsonl", [dup, assistant_line("2026-02-19T10:01:00Z", message_id="msg_2", request_id="req_2")])
        write_jsonl(data_dir / "b" / "two.jsonl", [dup, dup])
        events = UsageLoader(str(data_dir)).load()
        keys = [e.dedup_key for e in events]
        assert keys.count("msg_1:req_1") == 1
        assert len(events) == 2

    def test_events_without_identity_never_deduped(self, data_dir: Path, write_jsonl):
        anon = assistant_line("2026-02-19T10:00:00Z", message_id="msg_1")
        write_jsonl(data_dir / "a.jsonl", [anon, anon])
        write_jsonl(data_dir / "b.jsonl", [anon])
        assert len(UsageLoader(str(data_dir)).load()) == 3

    def test_sorted_by_timestamp(self, data_dir: Path, write_jsonl):
        write_jsonl(data_dir / "a.jsonl", [assistant_line("2026-02-19T12:00:00Z"), assistant_line("2026-02-19T09:00:00Z")])
        write_jsonl(data_dir / "b.jsonl", [assistant_line("2026-02-19T10:30:00Z")])
        events = UsageLoader(str(data_dir), max_workers=2).load()
        stamps = [e.timestamp for e in events]
        assert stamps == sorted(stamps)
        assert stamps[0] == datetime(2026, 2, 19, 9, tzinfo=timezone.utc)

    def test_dedup_set_cleared_between_passes(self, data_dir: Path, write_jsonl):
        write_jsonl(data_dir / "a.jsonl", [assistant_line("2026-02-19T10:00:00Z", message_id="m", request_id="r")])
        loader = UsageLoader(str(data_dir))
        assert len(loader.load()) == 1
        assert len(loader.load()) == 1

    def test_overlapping_passes_keep_their_events(self, data_dir: Path, write_jsonl):
        write_jsonl(data_dir / "a.jsonl", [assistant_line("2026-02-19T10:00:00Z", message_id="m1", request_id="r1")])
        loader = UsageLoader(str(data_dir))
        real_parse = parse_usage_file
        inner: list = []
        started: list = []

        def parse_with_overlap(path: Path):
            # a second full pass finishes while the first is still decoding
            if not started:
                started.append(path)
                inner.append(loader.load())
            return real_parse(path)

        with patch.object(ingestor, "parse_usage_file", side_effect=parse_with_overlap):
            outer = loader.load()

        assert len(inner[0]) == 1
        assert len(outer) == 1
        assert outer[0].dedup_key == "m1:r1"

    def test_no_files(self, data_dir: Path):
        assert UsageLoader(str(data_dir)).load() == []

    def test_missing_directory(self, tmp_path: Path):
        assert load_usage_events(str(tmp_path / "missing")) == []

    def test_single_path_override(self, data_dir: Path, write_jsonl):
        write_jsonl(data_dir / "a.jsonl", [assistant_line("2026-02-19T10:00:00Z")])
        assert len(load_usage_events(data_path=str(data_dir))) == 1

    def test_recent_window_passed_through(self, data_dir: Path, write_jsonl):
        write_jsonl(data_dir / "a.jsonl", [assistant_line("2026-02-19T10:00:00Z")], mtime=time.time() - 2 * 3600)
        assert len(load_usage_events(str(data_dir))) == 1
        assert load_usage_events(str(data_dir), recent_window=timedelta(hours=1)) == []
