"""Tests for sorting.file_mover module"""
import errno
import os
import stat
import tempfile
import shutil
from unittest.mock import Mock, patch
import pytest
from sorting.classifier import CandidateFile
from sorting.errors import DirectoryError, MoveError, PolicyError
from sorting.file_mover import (
    ALREADY_MOVED,
    CANCELLED,
    COPIED,
    FAILED,
    LINKED,
    SAME_FILE,
    copy_file_contents,
    ensure_dir,
    ensure_dirs,
    move_all,
    move_file,
)


def candidate(directory, name, content=b"%PDF-1.4 test"):
    path = os.path.join(directory, name)
    with open(path, "wb") as f:
        f.write(content)
    return CandidateFile(name=name, number=int(name.split(".")[0]), source_path=path)


class TestEnsureDirs:
    """Test suite for bucket directory creation"""

    @pytest.fixture
    def dest_dir(self):
        """Create a temporary destination root"""
        path = tempfile.mkdtemp()
        yield path
        shutil.rmtree(path, ignore_errors=True)

    def test_ensure_dirs_creates_distinct_buckets(self, dest_dir):
        cands = [
            CandidateFile("1.pdf", 1, "1.pdf"),
            CandidateFile("500.pdf", 500, "500.pdf"),
            CandidateFile("501.pdf", 501, "501.pdf"),
        ]

        paths = ensure_dirs(dest_dir, cands)

        assert paths == [os.path.join(dest_dir, "1-500"), os.path.join(dest_dir, "501-1000")]
        assert all(os.path.isdir(p) for p in paths)

    def test_ensure_dirs_is_idempotent(self, dest_dir):
        """Test that pre-existing bucket directories are not an error"""
        cands = [CandidateFile("7.pdf", 7, "7.pdf")]
        ensure_dirs(dest_dir, cands)
        marker = os.path.join(dest_dir, "1-500", "keep.txt")
        with open(marker, "w") as f:
            f.write("x")

        ensure_dirs(dest_dir, cands)

        assert os.path.exists(marker)

    def test_ensure_dirs_logs_new_directories(self, dest_dir):
        logger = Mock()
        ensure_dirs(dest_dir, [CandidateFile("7.pdf", 7, "7.pdf")], logger=logger)
        ensure_dirs(dest_dir, [CandidateFile("7.pdf", 7, "7.pdf")], logger=logger)

        assert logger.info.call_count == 1
        assert "Created bucket directory" in logger.info.call_args[0][0]

    def test_ensure_dir_failure_is_fatal(self, dest_dir):
        """Test that a file in the way of a directory raises DirectoryError"""
        blocker = os.path.join(dest_dir, "1-500")
        with open(blocker, "w") as f:
            f.write("not a directory")

        with pytest.raises(DirectoryError):
            ensure_dir(blocker)


class TestMoveFile:
    """Test suite for move_file function"""

    def test_move_file_links_on_same_filesystem(self, tmp_path):
        src = tmp_path / "1.pdf"
        src.write_bytes(b"%PDF data")
        dst = tmp_path / "out.pdf"

        status = move_file(str(src), str(dst))

        assert status == LINKED
        assert not src.exists()
        assert dst.read_bytes() == b"%PDF data"

    def test_move_file_copies_when_link_fails(self, tmp_path):
        """Test the byte-copy fallback used across filesystems"""
        src = tmp_path / "1.pdf"
        src.write_bytes(b"%PDF" + b"x" * 100000)
        dst = tmp_path / "out.pdf"

        with patch("os.link", side_effect=OSError(errno.EXDEV, "Invalid cross-device link")):
            status = move_file(str(src), str(dst))

        assert status == COPIED
        assert not src.exists()
        assert dst.read_bytes() == b"%PDF" + b"x" * 100000

    def test_move_file_overwrites_existing_destination(self, tmp_path):
        src = tmp_path / "1.pdf"
        src.write_bytes(b"new")
        dst = tmp_path / "out.pdf"
        dst.write_bytes(b"old content")

        status = move_file(str(src), str(dst))

        assert status == COPIED
        assert dst.read_bytes() == b"new"
        assert not src.exists()

    def test_move_file_same_file_is_noop(self, tmp_path):
        """Test that two names for the same inode are treated as already done"""
        src = tmp_path / "1.pdf"
        src.write_bytes(b"%PDF")
        dst = tmp_path / "linked.pdf"
        os.link(src, dst)

        assert move_file(str(src), str(dst)) == SAME_FILE
        assert move_file(str(src), str(src)) == SAME_FILE
        assert src.exists()
        assert dst.exists()

    def test_move_file_already_moved(self, tmp_path):
        dst = tmp_path / "out.pdf"
        dst.write_bytes(b"%PDF")

        assert move_file(str(tmp_path / "gone.pdf"), str(dst)) == ALREADY_MOVED

    def test_move_file_missing_source_and_destination(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            move_file(str(tmp_path / "gone.pdf"), str(tmp_path / "out.pdf"))

    def test_move_file_rejects_non_regular_source(self, tmp_path):
        src = tmp_path / "dir.pdf"
        src.mkdir()

        with pytest.raises(PolicyError):
            move_file(str(src), str(tmp_path / "out.pdf"))

    def test_move_file_rejects_non_regular_destination(self, tmp_path):
        src = tmp_path / "1.pdf"
        src.write_bytes(b"%PDF")
        dst = tmp_path / "out.pdf"
        dst.mkdir()

        with pytest.raises(PolicyError):
            move_file(str(src), str(dst))
        assert src.exists()

    def test_copy_file_contents_preserves_bytes(self, tmp_path):
        src = tmp_path / "a"
        src.write_bytes(bytes(range(256)) * 10)
        dst = tmp_path / "b"

        copy_file_contents(str(src), str(dst))

        assert dst.read_bytes() == src.read_bytes()
        assert stat.S_ISREG(os.stat(dst).st_mode)


class TestMoveAll:
    """Test suite for move_all function"""

    @pytest.fixture
    def temp_dirs(self):
        """Create temporary directories for testing"""
        source_dir = tempfile.mkdtemp()
        dest_dir = tempfile.mkdtemp()
        yield source_dir, dest_dir
        shutil.rmtree(source_dir, ignore_errors=True)
        shutil.rmtree(dest_dir, ignore_errors=True)

    def test_move_all_moves_into_buckets(self, temp_dirs):
        source_dir, dest_dir = temp_dirs
        cands = [candidate(source_dir, f"{n}.pdf") for n in (1, 500, 501, 1000, 1001)]
        ensure_dirs(dest_dir, cands)

        results = move_all(cands, dest_dir, workers=2)

        assert [r.candidate for r in results] == cands
        assert all(r.ok for r in results)
        for r in results:
            assert os.path.exists(r.destination)
            assert not os.path.exists(r.candidate.source_path)
        assert results[1].destination == os.path.join(dest_dir, "1-500", "500.pdf")
        assert results[3].destination == os.path.join(dest_dir, "501-1000", "1000.pdf")

    def test_move_all_twice_is_noop(self, temp_dirs):
        """Test that re-running on already-moved files does not fail or duplicate"""
        source_dir, dest_dir = temp_dirs
        cands = [candidate(source_dir, "42.pdf")]
        ensure_dirs(dest_dir, cands)
        move_all(cands, dest_dir)

        results = move_all(cands, dest_dir)

        assert results[0].status == ALREADY_MOVED
        assert os.listdir(os.path.join(dest_dir, "1-500")) == ["42.pdf"]

    def test_move_all_collects_failures(self, temp_dirs):
        """Test that one failed file does not stop the batch"""
        source_dir, dest_dir = temp_dirs
        good = candidate(source_dir, "1.pdf")
        bad = candidate(source_dir, "2.pdf")
        ensure_dirs(dest_dir, [good])
        os.mkdir(os.path.join(dest_dir, "1-500", "2.pdf"))
        logger = Mock()

        results = move_all([good, bad], dest_dir, logger=logger)

        assert results[0].ok
        assert results[1].status == FAILED
        assert isinstance(results[1].error, PolicyError)
        assert os.path.exists(bad.source_path)
        assert logger.error.called

    def test_move_all_fail_fast_raises(self, temp_dirs):
        source_dir, dest_dir = temp_dirs
        bad = candidate(source_dir, "2.pdf")
        ensure_dirs(dest_dir, [bad])
        os.mkdir(os.path.join(dest_dir, "1-500", "2.pdf"))

        with pytest.raises(MoveError):
            move_all([bad], dest_dir, fail_fast=True)

    def test_move_all_fail_fast_stops_queued_moves(self, temp_dirs):
        """Test that moves queued behind the first failure never start"""
        source_dir, dest_dir = temp_dirs
        bad = candidate(source_dir, "1.pdf")
        good = [candidate(source_dir, f"{n}.pdf") for n in range(2, 30)]
        ensure_dirs(dest_dir, [bad])
        os.mkdir(os.path.join(dest_dir, "1-500", "1.pdf"))

        with pytest.raises(MoveError):
            move_all([bad] + good, dest_dir, workers=1, fail_fast=True)

        for c in good:
            assert os.path.exists(c.source_path)
        assert os.listdir(os.path.join(dest_dir, "1-500")) == ["1.pdf"]

    def test_move_all_without_fail_fast_moves_the_rest(self, temp_dirs):
        source_dir, dest_dir = temp_dirs
        bad = candidate(source_dir, "1.pdf")
        good = [candidate(source_dir, f"{n}.pdf") for n in range(2, 10)]
        ensure_dirs(dest_dir, [bad])
        os.mkdir(os.path.join(dest_dir, "1-500", "1.pdf"))

        results = move_all([bad] + good, dest_dir, workers=1)

        assert results[0].status == FAILED
        assert all(r.status == LINKED for r in results[1:])
        assert not any(r.status == CANCELLED for r in results)

    def test_move_all_same_file_is_noop(self, temp_dirs):
        """Test that a destination already linked to the source is left alone"""
        source_dir, dest_dir = temp_dirs
        cand = candidate(source_dir, "7.pdf")
        ensure_dirs(dest_dir, [cand])
        dst = os.path.join(dest_dir, "1-500", "7.pdf")
        os.link(cand.source_path, dst)

        results = move_all([cand], dest_dir)

        assert results[0].status == SAME_FILE
        assert results[0].ok
        assert os.path.exists(cand.source_path)
        assert os.path.exists(dst)

    def test_move_all_fail_fast_success(self, temp_dirs):
        source_dir, dest_dir = temp_dirs
        cands = [candidate(source_dir, f"{n}.pdf") for n in range(1, 20)]
        ensure_dirs(dest_dir, cands)

        results = move_all(cands, dest_dir, workers=4, fail_fast=True)

        assert len(results) == 19
        assert all(r.ok for r in results)

    def test_move_all_empty(self, temp_dirs):
        _, dest_dir = temp_dirs
        assert move_all([], dest_dir) == []
