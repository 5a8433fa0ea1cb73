#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""文件移动测试"""

import errno
import os
import re
import shutil

import pytest

from inboxsort.core.directory_registry import DirectoryRegistry
from inboxsort.core import file_mover as file_mover_module
from inboxsort.core.file_mover import METHOD_DRY_RUN, METHOD_SIMILARITY, FileMover
from inboxsort.errors import CopyVerificationError, FileMoveError

from .conftest import write_file


def _listing(path):
    return sorted(os.listdir(path))


def test_move_into_new_directory(library):
    root, incoming = library
    source = write_file(incoming / "a.txt", "hello")

    outcome = FileMover().move_file(str(source), str(root / "文档"), method=METHOD_SIMILARITY)

    assert outcome.final_path == str(root / "文档" / "a.txt")
    assert outcome.method == METHOD_SIMILARITY
    assert not outcome.skipped
    assert not source.exists()
    assert (root / "文档" / "a.txt").read_text(encoding="utf-8") == "hello"


def test_collision_never_overwrites(library):
    root, incoming = library
    existing = write_file(root / "docs" / "a.txt", "old")
    source = write_file(incoming / "a.txt", "new")

    outcome = FileMover().move_file(str(source), str(root / "docs"))

    assert existing.read_text(encoding="utf-8") == "old"
    assert outcome.final_path != str(existing)
    assert re.fullmatch(r"a_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}(_\d+)?\.txt", os.path.basename(outcome.final_path))
    assert open(outcome.final_path, encoding="utf-8").read() == "new"
    assert not source.exists()


def test_unique_name_adds_counter_when_timestamp_taken(tmp_path, monkeypatch):
    class FixedDatetime:
        @staticmethod
        def now():
            import datetime
            return datetime.datetime(2025, 1, 2, 3, 4, 5)

    monkeypatch.setattr(file_mover_module, "datetime", FixedDatetime)
    write_file(tmp_path / "a_2025-01-02T03-04-05.txt")

    path = FileMover().generate_unique_target_path(str(tmp_path), "/in/a.txt")

    assert os.path.basename(path) == "a_2025-01-02T03-04-05_1.txt"


def test_target_dir_ending_with_file_name_is_stripped(library):
    root, incoming = library
    source = write_file(incoming / "a.txt")

    outcome = FileMover().move_file(str(source), str(root / "docs" / "a.txt"))

    assert outcome.final_path == str(root / "docs" / "a.txt")
    assert (root / "docs").is_dir()
    assert not (root / "docs" / "a.txt").is_dir()


def test_cross_device_falls_back_to_copy(library, monkeypatch):
    root, incoming = library
    payload = os.urandom(4096)
    source = write_file(incoming / "big.bin", payload)
    real_rename = os.rename

    def fake_rename(src, dst):
        if os.path.abspath(src) == str(source):
            raise OSError(errno.EXDEV, "Invalid cross-device link")
        return real_rename(src, dst)

    monkeypatch.setattr(os, "rename", fake_rename)
    outcome = FileMover().move_file(str(source), str(root / "bin"))

    assert outcome.final_path == str(root / "bin" / "big.bin")
    assert (root / "bin" / "big.bin").read_bytes() == payload
    assert not source.exists()
    assert _listing(root / "bin") == ["big.bin"]


def test_cross_device_size_mismatch_keeps_source(library, monkeypatch):
    root, incoming = library
    source = write_file(incoming / "doc.txt", "0123456789")
    real_rename = os.rename

    def fake_rename(src, dst):
        if os.path.abspath(src) == str(source):
            raise OSError(errno.EXDEV, "Invalid cross-device link")
        return real_rename(src, dst)

    def truncated_copy(src, dst):
        with open(dst, "wb") as f:
            f.write(b"01234")
        return dst

    monkeypatch.setattr(os, "rename", fake_rename)
    monkeypatch.setattr(shutil, "copy2", truncated_copy)

    with pytest.raises(CopyVerificationError):
        FileMover().move_file(str(source), str(root / "docs"))

    assert source.read_text(encoding="utf-8") == "0123456789"
    assert _listing(root / "docs") == []


def test_transient_error_is_retried_with_backoff(library, monkeypatch, fake_sleep):
    root, incoming = library
    source = write_file(incoming / "busy.txt")
    real_rename = os.rename
    failures = {"left": 2}

    def flaky_rename(src, dst):
        if failures["left"]:
            failures["left"] -= 1
            raise OSError(errno.EBUSY, "Device or resource busy")
        return real_rename(src, dst)

    monkeypatch.setattr(os, "rename", flaky_rename)
    outcome = FileMover(max_retries=3, retry_delay_base=0.5, sleep=fake_sleep).move_file(
        str(source), str(root / "docs"))

    assert outcome.final_path == str(root / "docs" / "busy.txt")
    assert fake_sleep.calls == [0.5, 1.0]


def test_transient_error_exhausts_retries(library, monkeypatch, fake_sleep):
    root, incoming = library
    source = write_file(incoming / "locked.txt")

    def locked_rename(src, dst):
        raise OSError(errno.EBUSY, "Device or resource busy")

    monkeypatch.setattr(os, "rename", locked_rename)
    mover = FileMover(max_retries=3, retry_delay_base=1.0, sleep=fake_sleep)

    with pytest.raises(FileMoveError) as exc_info:
        mover.move_file(str(source), str(root / "docs"))

    assert exc_info.value.source == str(source)
    assert fake_sleep.calls == [1.0, 2.0]
    assert source.exists()


def test_missing_source_is_skipped(library):
    root, incoming = library

    outcome = FileMover().move_file(str(incoming / "gone.txt"), str(root / "docs"))

    assert outcome.skipped
    assert not (root / "docs").exists()


def test_source_vanishing_during_rename_is_skipped(library, monkeypatch):
    root, incoming = library
    source = write_file(incoming / "race.txt")

    def vanishing_rename(src, dst):
        os.unlink(src)
        raise FileNotFoundError(errno.ENOENT, "No such file or directory", src)

    monkeypatch.setattr(os, "rename", vanishing_rename)
    outcome = FileMover().move_file(str(source), str(root / "docs"))

    assert outcome.skipped


def test_other_errors_propagate(library, monkeypatch):
    root, incoming = library
    source = write_file(incoming / "a.txt")

    def full_disk(src, dst):
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(os, "rename", full_disk)
    with pytest.raises(OSError) as exc_info:
        FileMover().move_file(str(source), str(root / "docs"))

    assert exc_info.value.errno == errno.ENOSPC
    assert source.exists()


def test_dry_run_does_not_touch_filesystem(library):
    root, incoming = library
    source = write_file(incoming / "a.txt")
    registry = DirectoryRegistry(str(root))
    registry.initialize([])

    outcome = FileMover(dry_run=True, registry=registry).move_file(str(source), str(root / "新目录" / "子目录"))

    assert outcome.method == METHOD_DRY_RUN
    assert source.exists()
    assert not (root / "新目录").exists()
    assert registry.snapshot() == ["新目录/", "新目录/子目录/"]


def test_real_move_records_new_directory(library):
    root, incoming = library
    source = write_file(incoming / "a.txt")
    registry = DirectoryRegistry(str(root))
    registry.initialize([])

    FileMover(registry=registry).move_file(str(source), str(root / "A" / "B"))

    assert registry.snapshot() == ["A/", "A/B/"]


def _cross_device(source, real_rename):
    def fake_rename(src, dst):
        if os.path.abspath(src) == str(source):
            raise OSError(errno.EXDEV, "Invalid cross-device link")
        return real_rename(src, dst)
    return fake_rename


def test_target_equal_to_library_root_is_not_stripped(library):
    root, incoming = library
    write_file(root / root.name, "old")
    source = write_file(incoming / root.name, "new")
    registry = DirectoryRegistry(str(root))
    registry.initialize([])

    outcome = FileMover(registry=registry).move_file(str(source), str(root))

    assert os.path.dirname(outcome.final_path) == str(root)
    assert (root / root.name).read_text(encoding="utf-8") == "old"
    assert sorted(os.listdir(root.parent)) == sorted([root.name, incoming.name])


def test_cross_device_with_existing_destination_keeps_old_file(library, monkeypatch):
    root, incoming = library
    existing = write_file(root / "docs" / "a.txt", "old")
    source = write_file(incoming / "a.txt", "new content")
    monkeypatch.setattr(os, "rename", _cross_device(source, os.rename))

    outcome = FileMover().move_file(str(source), str(root / "docs"))

    assert existing.read_text(encoding="utf-8") == "old"
    assert re.fullmatch(r"a_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}(_\d+)?\.txt", os.path.basename(outcome.final_path))
    assert open(outcome.final_path, encoding="utf-8").read() == "new content"
    assert not source.exists()
    assert not any(".tmp-" in name for name in os.listdir(root / "docs"))


def test_cross_device_source_delete_is_retried(library, monkeypatch, fake_sleep):
    root, incoming = library
    source = write_file(incoming / "x.bin", b"payload")
    real_unlink = os.unlink
    failures = {"left": 1}

    def flaky_unlink(path):
        if os.path.abspath(path) == str(source) and failures["left"]:
            failures["left"] -= 1
            raise OSError(errno.EBUSY, "Device or resource busy")
        return real_unlink(path)

    monkeypatch.setattr(os, "rename", _cross_device(source, os.rename))
    monkeypatch.setattr(os, "unlink", flaky_unlink)

    outcome = FileMover(retry_delay_base=1.0, sleep=fake_sleep).move_file(str(source), str(root / "bin"))

    assert fake_sleep.calls == [1.0]
    assert not source.exists()
    assert (root / "bin" / "x.bin").read_bytes() == b"payload"
    assert outcome.final_path == str(root / "bin" / "x.bin")


def test_cross_device_source_delete_exhausts_retries(library, monkeypatch, fake_sleep):
    root, incoming = library
    source = write_file(incoming / "x.bin", b"payload")
    real_unlink = os.unlink

    def locked_unlink(path):
        if os.path.abspath(path) == str(source):
            raise OSError(errno.EBUSY, "Device or resource busy")
        return real_unlink(path)

    monkeypatch.setattr(os, "rename", _cross_device(source, os.rename))
    monkeypatch.setattr(os, "unlink", locked_unlink)

    with pytest.raises(FileMoveError) as exc_info:
        FileMover(max_retries=3, retry_delay_base=1.0, sleep=fake_sleep).move_file(str(source), str(root / "bin"))

    assert exc_info.value.source == str(source)
    assert fake_sleep.calls == [1.0, 2.0]
    assert source.exists()
    assert (root / "bin" / "x.bin").read_bytes() == b"payload"


def test_source_vanishing_after_copy_removes_temp_file(library, monkeypatch):
    root, incoming = library
    source = write_file(incoming / "gone.txt", "data")
    real_copy2 = shutil.copy2

    def copy_then_lose_source(src, dst):
        result = real_copy2(src, dst)
        os.unlink(src)
        return result

    monkeypatch.setattr(os, "rename", _cross_device(source, os.rename))
    monkeypatch.setattr(shutil, "copy2", copy_then_lose_source)

    outcome = FileMover().move_file(str(source), str(root / "docs"))

    assert outcome.skipped
    assert _listing(root / "docs") == []


def test_cross_device_temp_rename_is_retried(library, monkeypatch, fake_sleep):
    root, incoming = library
    source = write_file(incoming / "a.txt", "data")
    real_rename = os.rename
    failures = {"left": 1}

    def fake_rename(src, dst):
        if os.path.abspath(src) == str(source):
            raise OSError(errno.EXDEV, "Invalid cross-device link")
        if ".tmp-" in os.path.basename(src) and failures["left"]:
            failures["left"] -= 1
            raise OSError(errno.EBUSY, "Device or resource busy")
        return real_rename(src, dst)

    monkeypatch.setattr(os, "rename", fake_rename)

    outcome = FileMover(retry_delay_base=0.5, sleep=fake_sleep).move_file(str(source), str(root / "docs"))

    assert fake_sleep.calls == [0.5]
    assert outcome.final_path == str(root / "docs" / "a.txt")
    assert _listing(root / "docs") == ["a.txt"]
    assert not source.exists()


def test_cross_device_temp_rename_exhausts_retries(library, monkeypatch, fake_sleep):
    root, incoming = library
    source = write_file(incoming / "a.txt", "data")
    real_rename = os.rename

    def fake_rename(src, dst):
        if os.path.abspath(src) == str(source):
            raise OSError(errno.EXDEV, "Invalid cross-device link")
        if ".tmp-" in os.path.basename(src):
            raise OSError(errno.EBUSY, "Device or resource busy")
        return real_rename(src, dst)

    monkeypatch.setattr(os, "rename", fake_rename)

    with pytest.raises(FileMoveError):
        FileMover(max_retries=2, retry_delay_base=0.5, sleep=fake_sleep).move_file(str(source), str(root / "docs"))

    assert fake_sleep.calls == [0.5]
    assert source.exists()
    assert _listing(root / "docs") == []
