from app.crawler.progress import (
    ProgressSnapshot,
    apply_progress_chunk,
    apply_progress_lines,
    parse_progress_line,
    split_lines,
)


def test_parses_file_counts():
    assert parse_progress_line("  42/100 files written") == {
        "files_downloaded": 42,
        "total_files": 100,
    }


def test_parses_current_url_and_rate():
    updates = parse_progress_line("Downloading: http://example.com/style.css at 12.5 KB/s")
    assert updates["current_url"] == "http://example.com/style.css at 12.5 KB/s"
    assert updates["transfer_rate_kbps"] == 12.5


def test_unrelated_output_leaves_snapshot_untouched():
    snapshot = ProgressSnapshot(files_downloaded=1, total_files=2)
    assert apply_progress_lines(snapshot, ["Mirror launched on Mon", ""]) is snapshot


def test_latest_value_wins():
    snapshot = apply_progress_lines(ProgressSnapshot(), ["1/10 files", "5/12 files"])
    assert snapshot.files_downloaded == 5
    assert snapshot.total_files == 12


def test_apply_returns_new_snapshot():
    original = ProgressSnapshot(current_url="http://example.com")
    updated = apply_progress_lines(original, ["3/9 files"])
    assert original.files_downloaded == 0
    assert updated.files_downloaded == 3
    assert updated.current_url == "http://example.com"


def test_split_lines_keeps_unterminated_tail():
    lines, rest = split_lines("a\r\nb\rc\nhalf")
    assert lines == ["a", "b", "c"]
    assert rest == "half"


def test_chunk_includes_unterminated_tail():
    snapshot = apply_progress_chunk(ProgressSnapshot(), "noise\n7/8 files")
    assert snapshot.files_downloaded == 7


def test_snapshot_serializes_camel_case():
    body = ProgressSnapshot(transfer_rate_kbps=3.0).model_dump(by_alias=True)
    assert body["transferRateKBps"] == 3.0
    assert "filesDownloaded" in body


def test_matching_lines_refresh_timestamp():
    original = ProgressSnapshot()
    updated = apply_progress_lines(original, ["2/4 files"])
    assert updated.updated_at >= original.updated_at
    assert "updatedAt" not in updated.model_dump(by_alias=True)
