import math

import numpy as np
import pytest

from mcgreeks import InvalidParameterError, RandomStreamState, VectorUniformStream, with_seed


class TestWithSeed:
    """Test seed handling"""

    def test_bytes_seed_reproducible(self):
        """Test byte seeds replay the same stream"""
        a = with_seed(b"\x01\x02\x03").stream().next_block(4)
        b = with_seed(b"\x01\x02\x03").stream().next_block(4)
        np.testing.assert_array_equal(a, b)

    @pytest.mark.parametrize(
        ("first", "second"),
        [(b"\x2a", b"\x2a\x00\x00"), (b"\x00", b"\x00\x00"), (b"\x01\x02", b"\x02\x01")],
    )
    def test_distinct_bytes_give_distinct_streams(self, first, second):
        """Test trailing zero bytes and byte order change the stream"""
        a = with_seed(first).stream().next_block(4)
        b = with_seed(second).stream().next_block(4)
        assert not np.array_equal(a, b)

    def test_different_seeds_differ(self):
        """Test distinct seeds give distinct streams"""
        a = with_seed(1).stream().next_block(4)
        b = with_seed(2).stream().next_block(4)
        assert not np.array_equal(a, b)

    def test_none_uses_os_entropy(self):
        """Test unseeded states draw fresh entropy"""
        assert with_seed(None).entropy != with_seed(None).entropy

    @pytest.mark.parametrize("seed", [-1, 1.5, "abc", b""])
    def test_invalid_seed(self, seed):
        """Test unsupported seeds raise"""
        with pytest.raises(InvalidParameterError):
            with_seed(seed)

    def test_spawn_independent_children(self):
        """Test spawned children are distinct and reproducible"""
        kids = with_seed(7).spawn(3)
        assert len(kids) == 3
        assert all(isinstance(k, RandomStreamState) for k in kids)
        draws = [k.stream().next() for k in kids]
        assert not np.array_equal(draws[0], draws[1])
        again = with_seed(7).spawn(3)[1].stream().next()
        np.testing.assert_array_equal(draws[1], again)


class TestVectorUniformStream:
    """Test lane-wide uniform draws"""

    def test_shapes_and_dtype(self):
        """Test next() and next_block() shapes"""
        stream = with_seed(0).stream(lane_width=8, dtype="float32")
        assert stream.next().shape == (8,)
        block = stream.next_block(5)
        assert block.shape == (5, 8)
        assert block.dtype == np.float32

    def test_float64_stream(self):
        """Test double precision streams"""
        stream = with_seed(0).stream(lane_width=4, dtype="float64")
        assert stream.next().dtype == np.float64

    def test_iterator_protocol(self):
        """Test the stream can be iterated lane by lane"""
        stream = with_seed(0).stream(lane_width=2)
        first = next(iter(stream))
        assert first.shape == (2,)

    def test_open_interval(self):
        """Test draws lie strictly inside (0, 1)"""
        u = with_seed(3).stream().next_block(20_000)
        assert (u > 0).all()
        assert (u < 1).all()

    def test_invalid_lane_width(self):
        """Test lane width must be positive"""
        with pytest.raises(InvalidParameterError):
            VectorUniformStream(np.random.SeedSequence(0), lane_width=0)

    @pytest.mark.parametrize(("n_draws", "tol"), [(100, 0.03), (1000, 0.015), (100_000, 0.001)])
    def test_uniform_moments(self, n_draws, tol):
        """Test mean, variance and std dev approach 1/2, 1/12 and 1/sqrt(12)"""
        stream = with_seed(2024).stream(lane_width=8, dtype="float64")
        u = stream.next_block(math.ceil(n_draws / 8)).ravel()[:n_draws]
        assert u.size == n_draws
        assert abs(u.mean() - 0.5) < tol
        assert abs(u.var() - 1.0 / 12.0) < tol
        assert abs(u.std() - np.sqrt(1.0 / 12.0)) < tol

    def test_zero_draws_are_clamped(self):
        """Test an exact zero from the generator is lifted to the dtype's tiny"""
        stream = with_seed(0).stream(lane_width=4, dtype="float32")

        class _ZeroGen:
            def random(self, size, dtype):
                return np.zeros(size, dtype=dtype)

        stream._gen = _ZeroGen()
        u = stream.next()
        assert (u == np.finfo(np.float32).tiny).all()
