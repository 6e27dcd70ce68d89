"""Tests for chunking strategies and throughput estimation."""
import pytest

from chunklift.core.config import MB
from chunklift.core.upload import FixedSizeChunkingStrategy, ThroughputMeter


class TestFixedSizeChunkingStrategy:
    """Test suite for FixedSizeChunkingStrategy."""
    
    def test_twelve_megabytes(self):
        chunks = FixedSizeChunkingStrategy(5 * MB).calculate_chunks(12 * MB)
        
        assert chunks == [(0, 5 * MB), (5 * MB, 10 * MB), (10 * MB, 12 * MB)]
    
    def test_exact_multiple(self):
        assert FixedSizeChunkingStrategy(4).calculate_chunks(8) == [(0, 4), (4, 8)]
    
    def test_empty_file(self):
        assert FixedSizeChunkingStrategy(4).calculate_chunks(0) == []
    
    def test_from_resume_offset(self):
        """Test boundaries follow the durable offset, not the grid."""
        chunks = FixedSizeChunkingStrategy(4).calculate_chunks(10, start=3)
        
        assert chunks == [(3, 7), (7, 10)]
    
    def test_next_chunk(self):
        strategy = FixedSizeChunkingStrategy(4)
        
        assert strategy.next_chunk(10, 8) == (8, 10)
        with pytest.raises(ValueError):
            strategy.next_chunk(10, 10)
    
    def test_invalid_size(self):
        with pytest.raises(ValueError):
            FixedSizeChunkingStrategy(0)


class TestThroughputMeter:
    """Test suite for ThroughputMeter."""
    
    def test_speed_over_window(self):
        meter = ThroughputMeter(window=5.0)
        meter.record(0, at=0.0)
        meter.record(10 * MB, at=2.0)
        
        assert meter.speed(now=2.0) == 5 * MB
    
    def test_needs_two_samples(self):
        meter = ThroughputMeter()
        meter.record(MB, at=0.0)
        
        assert meter.speed(now=0.0) == 0.0
        assert meter.eta(MB, now=0.0) is None
    
    def test_old_samples_expire(self):
        meter = ThroughputMeter(window=5.0)
        meter.record(0, at=0.0)
        meter.record(MB, at=1.0)
        meter.record(3 * MB, at=5.0)
        
        assert meter.sample_count == 2
        assert meter.speed(now=5.0) == 2 * MB / 4.0
    
    def test_idle_window_has_no_speed(self):
        meter = ThroughputMeter(window=5.0)
        meter.record(0, at=0.0)
        meter.record(MB, at=1.0)
        
        assert meter.speed(now=10.0) == 0.0
    
    def test_eta(self):
        meter = ThroughputMeter(window=5.0)
        meter.record(0, at=0.0)
        meter.record(2 * MB, at=1.0)
        
        assert meter.eta(6 * MB, now=1.0) == 3.0
    
    def test_injected_clock(self):
        now = [0.0]
        meter = ThroughputMeter(window=5.0, clock=lambda: now[0])
        meter.record(0)
        now[0] = 2.0
        meter.record(4 * MB)
        
        assert meter.speed() == 2 * MB
    
    def test_reset(self):
        meter = ThroughputMeter()
        meter.record(0, at=0.0)
        meter.reset()
        
        assert meter.sample_count == 0
    
    def test_invalid_window(self):
        with pytest.raises(ValueError):
            ThroughputMeter(window=0)
