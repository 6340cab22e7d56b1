import numpy as np
import pytest

from eddystream.processing.gaps import GapIndex, scan_blocks, sampling_period
from eddystream.processing.timeseries import TimeSeries, timestamps_to_seconds


def test_sampling_period_from_first_two_samples():
    assert sampling_period(np.array([0.0, 0.1, 0.2, 5.0])) == pytest.approx(0.1)


def test_sampling_period_datetime_axis():
    ts = np.datetime64("2024-01-01T00:00:00", "ns") + np.arange(3) * np.timedelta64(50, "ms")
    assert sampling_period(ts) == pytest.approx(0.05)


def test_sampling_period_short_axis():
    assert sampling_period(np.array([1.0])) == 0.0


def test_timestamps_to_seconds_relative_to_first():
    ts = np.array(["2024-01-01T00:00:10", "2024-01-01T00:00:12"], dtype="datetime64[ns]")
    np.testing.assert_allclose(timestamps_to_seconds(ts), [0.0, 2.0])


class TestGapIndex:

    def test_counts_gaps_above_threshold(self):
        index = GapIndex(np.array([0.0, 1.0, 2.0, 20.0, 21.0, 40.0]), threshold_seconds=10.0)
        assert index.gap_count == 2

    def test_step_equal_to_threshold_is_not_a_gap(self):
        index = GapIndex(np.array([0.0, 10.0, 20.0]), threshold_seconds=10.0)
        assert index.gap_count == 0

    def test_has_gap_only_inside_block(self):
        # gap between samples 2 and 3
        index = GapIndex(np.array([0.0, 1.0, 2.0, 20.0, 21.0, 22.0]), threshold_seconds=10.0)
        assert index.has_gap(0, 4)
        assert index.has_gap(2, 4)
        assert not index.has_gap(0, 3)
        assert not index.has_gap(3, 6)

    def test_invalid_range(self):
        index = GapIndex(np.arange(5, dtype=float), threshold_seconds=10.0)
        with pytest.raises(IndexError):
            index.has_gap(3, 3)
        with pytest.raises(IndexError):
            index.has_gap(0, 6)

    def test_prefix_is_read_only(self):
        index = GapIndex(np.arange(5, dtype=float), threshold_seconds=10.0)
        with pytest.raises(ValueError):
            index._prefix[0] = 1


class TestScanBlocks:

    def test_positions_and_midpoints(self):
        index = GapIndex(np.arange(16, dtype=float), 10.0)
        blocks = list(scan_blocks(16, 8, 4, index))
        assert [(b.start, b.stop) for b in blocks] == [(0, 8), (4, 12), (8, 16)]
        assert [b.mid for b in blocks] == [3, 7, 11]
        assert all(b.valid for b in blocks)

    def test_gap_blocks_flagged_invalid(self):
        seconds = np.arange(16, dtype=float)
        seconds[10:] += 30.0
        blocks = list(scan_blocks(16, 8, 4, GapIndex(seconds, 10.0)))
        assert [b.valid for b in blocks] == [True, False, False]

    def test_trailing_partial_block_dropped(self):
        index = GapIndex(np.arange(10, dtype=float), 10.0)
        blocks = list(scan_blocks(10, 4, 4, index))
        assert [b.start for b in blocks] == [0, 4]

    def test_oversized_block_spans_series(self):
        index = GapIndex(np.arange(5, dtype=float), 10.0)
        blocks = list(scan_blocks(5, 8, 2, index))
        assert len(blocks) == 1
        assert (blocks[0].start, blocks[0].stop, blocks[0].mid) == (0, 5, 2)

    def test_shift_must_be_positive(self):
        with pytest.raises(ValueError):
            list(scan_blocks(8, 4, 0, GapIndex(np.arange(8, dtype=float), 10.0)))


class TestTimeSeries:

    def test_rejects_non_increasing_timestamps(self):
        with pytest.raises(ValueError):
            TimeSeries(timestamps=np.array([0.0, 1.0, 1.0]), channels={"a": [1, 2, 3]})

    def test_rejects_length_mismatch(self):
        with pytest.raises(ValueError):
            TimeSeries(timestamps=np.array([0.0, 1.0]), channels={"a": [1, 2, 3]})

    def test_with_channels_leaves_original_untouched(self):
        series = TimeSeries(timestamps=np.array([0.0, 1.0]), channels={"a": [1.0, 2.0]})
        updated = series.with_channels({"a": np.array([5.0, 6.0])})
        np.testing.assert_array_equal(series.channel("a"), [1.0, 2.0])
        np.testing.assert_array_equal(updated.channel("a"), [5.0, 6.0])
