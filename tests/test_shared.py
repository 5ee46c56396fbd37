"""Tests for shared helpers: transforms, errors and memory instrumentation."""

import logging
import unittest

import numpy as np
import pytest

from scene_optimizer.shared import errors, mem_profile
from scene_optimizer.shared.transforms import (
    compose,
    decompose_scale,
    identity,
    is_near_identity,
    preserves_scale,
    rotation_z,
    scaling,
    transform_box,
    transform_similarity,
    translation,
)


class TestTransforms(unittest.TestCase):

    def test_decompose_scale(self):
        m = compose(translation(3, 2, 1), rotation_z(0.7), scaling(2, 3, 4))
        np.testing.assert_allclose(decompose_scale(m), [2, 3, 4])

    def test_near_identity(self):
        m = identity()
        m[0, 3] = 5e-5
        self.assertTrue(is_near_identity(m))
        m[0, 3] = 5e-3
        self.assertFalse(is_near_identity(m))

    def test_similarity_is_binary(self):
        a = translation(0, 0, 0)
        self.assertEqual(transform_similarity(a, translation(0.05, 0, 0)), 1.0)
        self.assertEqual(transform_similarity(a, translation(0.5, 0, 0)), 0.0)
        self.assertEqual(transform_similarity(a, rotation_z(0.5)), 0.0)
        self.assertEqual(transform_similarity(a, scaling(1.5)), 0.0)

    def test_rotation_under_uniform_scale_preserves_scale(self):
        self.assertTrue(preserves_scale(scaling(2.0), rotation_z(0.8)))

    def test_non_uniform_scale_over_rotation_loses_scale(self):
        self.assertFalse(preserves_scale(scaling(1, 3, 1), rotation_z(0.8)))

    def test_transform_box(self):
        center, size = transform_box(translation(1, 0, 0) @ scaling(2.0), [0, 0, 0], [1, 1, 1])
        np.testing.assert_allclose(center, [1, 0, 0])
        np.testing.assert_allclose(size, [2, 2, 2])


class TestErrors:

    def test_builtin_bases(self):
        assert issubclass(errors.InvalidArgumentError, ValueError)
        assert issubclass(errors.NullReferenceError, TypeError)
        assert issubclass(errors.SceneNotFoundError, FileNotFoundError)
        assert issubclass(errors.SceneIOError, OSError)
        assert issubclass(errors.InvariantViolationError, RuntimeError)

    def test_require(self):
        assert errors.require(3, "x") == 3
        with pytest.raises(errors.NullReferenceError, match="graph must not be None"):
            errors.require(None, "graph")


class TestMemProfile:

    def test_snapshot_logs_delta(self, caplog):
        with caplog.at_level(logging.INFO, logger="scene_optimizer.shared.mem_profile"):
            with mem_profile.tracemalloc_snapshot("block"):
                data = [bytes(1024) for _ in range(64)]
        assert data
        assert any("[mem] block:" in r.getMessage() for r in caplog.records)

    def test_profile_memory_is_noop_by_default(self, monkeypatch):
        monkeypatch.delenv("PROFILE_MEMORY", raising=False)

        def fn():
            return 1

        assert mem_profile.profile_memory(fn) is fn
