"""
Tests for vision page sampling and batch windows.

Run with: pytest tests/test_page_sampler.py -v
"""
import pytest

from page_sampler import batch_windows, sample_pages


class TestSamplePages:

    def test_long_document(self):
        assert sample_pages(45) == [0, 1, 2, 3, 4, 14, 24, 34, 43, 44]

    def test_short_document(self):
        assert sample_pages(3) == [0, 1, 2]

    def test_single_page(self):
        assert sample_pages(1) == [0]

    def test_empty_document(self):
        assert sample_pages(0) == []

    def test_sample_size_bounded_by_stride(self):
        assert len(sample_pages(200)) == 4 + 20 + 2

    def test_invalid_stride(self):
        with pytest.raises(ValueError):
            sample_pages(10, stride=0)


class TestBatchWindows:

    def test_overlapping_windows(self):
        windows = batch_windows(25, batch_size=10, overlap=1)
        assert [(w.start_page, w.end_page) for w in windows] == [(0, 10), (9, 19), (18, 25)]
        assert [w.batch_index for w in windows] == [0, 1, 2]

    def test_fits_in_one_batch(self):
        windows = batch_windows(7)
        assert [(w.start_page, w.end_page) for w in windows] == [(0, 7)]

    def test_exact_multiple(self):
        windows = batch_windows(10, batch_size=10)
        assert len(windows) == 1

    def test_page_ceiling(self):
        windows = batch_windows(300, batch_size=10, overlap=1, max_pages=100)
        assert windows[-1].end_page == 100
        assert all(w.end_page <= 100 for w in windows)

    def test_no_overlap(self):
        windows = batch_windows(20, batch_size=5, overlap=0)
        assert [w.start_page for w in windows] == [0, 5, 10, 15]

    def test_every_page_covered(self):
        windows = batch_windows(57, batch_size=10, overlap=1)
        covered = set()
        for w in windows:
            covered.update(w.pages())
        assert covered == set(range(57))

    def test_overlap_must_be_smaller_than_batch(self):
        with pytest.raises(ValueError):
            batch_windows(20, batch_size=5, overlap=5)

    def test_empty_document(self):
        assert batch_windows(0) == []
