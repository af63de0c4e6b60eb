"""
Unit tests for the FallStateMachine.

These drive the machine with magnitudes directly, so every stage boundary
can be hit on an exact millisecond.
"""

import math
import unittest

from fallguard.core.config import FallConfig
from fallguard.detection.fall import FallStage, FallStateMachine

class TestFallStateMachine(unittest.TestCase):
    """Stage transitions with the default calibration."""

    def setUp(self):
        self.config = FallConfig()
        self.fsm = FallStateMachine(self.config)

    def _confirm_free_fall(self, start_ms=0):
        self.fsm.update_magnitude(1.0, start_ms)
        self.fsm.update_magnitude(1.0, start_ms + self.config.free_fall_min_ms)
        self.assertEqual(self.fsm.stage, FallStage.FREE_FALL_CONFIRMED)
        return start_ms + self.config.free_fall_min_ms

    def _impact(self, start_ms=0):
        confirmed = self._confirm_free_fall(start_ms)
        impact_ms = confirmed + 100
        self.fsm.update_magnitude(30.0, impact_ms)
        self.assertEqual(self.fsm.stage, FallStage.POST_IMPACT)
        return impact_ms

    def test_starts_idle(self):
        self.assertEqual(self.fsm.stage, FallStage.IDLE)
        self.assertIsNone(self.fsm.free_fall_start_ms)
        self.assertIsNone(self.fsm.impact_ms)

    def test_low_magnitude_starts_candidate(self):
        self.fsm.update_magnitude(2.0, 1000)
        self.assertEqual(self.fsm.stage, FallStage.FREE_FALL_CANDIDATE)
        self.assertEqual(self.fsm.free_fall_start_ms, 1000)

    def test_threshold_is_inclusive(self):
        self.fsm.update_magnitude(self.config.free_fall_threshold, 0)
        self.assertEqual(self.fsm.stage, FallStage.FREE_FALL_CANDIDATE)

    def test_candidate_recovers_to_idle(self):
        self.fsm.update_magnitude(1.0, 0)
        self.fsm.update_magnitude(9.8, 100)
        self.assertEqual(self.fsm.stage, FallStage.IDLE)
        self.assertIsNone(self.fsm.free_fall_start_ms)

    def test_candidate_not_confirmed_before_min_duration(self):
        self.fsm.update_magnitude(1.0, 0)
        self.fsm.update_magnitude(1.0, self.config.free_fall_min_ms - 1)
        self.assertEqual(self.fsm.stage, FallStage.FREE_FALL_CANDIDATE)

    def test_candidate_confirmed_at_min_duration(self):
        confirmed = self._confirm_free_fall(500)
        self.assertEqual(self.fsm.free_fall_confirmed_ms, confirmed)
        self.assertEqual(self.fsm.free_fall_start_ms, 500)

    def test_spike_without_free_fall_is_ignored(self):
        self.fsm.update_magnitude(40.0, 0)
        self.assertEqual(self.fsm.stage, FallStage.IDLE)

    def test_impact_within_window(self):
        impact_ms = self._impact()
        self.assertEqual(self.fsm.impact_ms, impact_ms)
        self.assertEqual(self.fsm.stillness_start_ms, impact_ms)
        self.assertEqual(self.fsm.stillness_sample_count, 0)

    def test_impact_window_boundary(self):
        confirmed = self._confirm_free_fall()
        # Still waiting exactly at the window edge
        self.fsm.update_magnitude(9.8, confirmed + self.config.impact_window_ms)
        self.assertEqual(self.fsm.stage, FallStage.FREE_FALL_CONFIRMED)
        self.fsm.update_magnitude(9.8, confirmed + self.config.impact_window_ms + 1)
        self.assertEqual(self.fsm.stage, FallStage.IDLE)

    def test_late_spike_does_not_count_as_impact(self):
        confirmed = self._confirm_free_fall()
        self.fsm.update_magnitude(30.0, confirmed + self.config.impact_window_ms + 1)
        self.assertEqual(self.fsm.stage, FallStage.IDLE)

    def test_stillness_accumulates_linear_samples(self):
        impact_ms = self._impact()
        for i, value in enumerate((0.5, 1.0, 0.2), start=1):
            self.assertIsNone(self.fsm.update_linear(value, impact_ms + 20 * i))
        self.assertEqual(self.fsm.stillness_sample_count, 3)
        self.assertAlmostEqual(self.fsm.stillness_energy, 0.25 + 1.0 + 0.04)
        self.assertEqual(self.fsm.stillness_peak, 1.0)

    def test_still_after_impact_is_a_fall(self):
        impact_ms = self._impact()
        verdict = None
        t = impact_ms
        while verdict is None:
            t += 20
            verdict = self.fsm.update_linear(0.3, t)
        self.assertTrue(verdict.is_fall)
        self.assertEqual(t, impact_ms + self.config.stillness_window_ms)
        self.assertAlmostEqual(verdict.rms, 0.3)
        self.assertEqual(verdict.impact_ms, impact_ms)
        self.assertEqual(self.fsm.stage, FallStage.IDLE)

    def test_movement_after_impact_is_not_a_fall(self):
        impact_ms = self._impact()
        self.fsm.update_linear(4.0, impact_ms + 20)
        verdict = self.fsm.update_linear(0.1, impact_ms + self.config.stillness_window_ms)
        self.assertFalse(verdict.is_fall)
        self.assertEqual(verdict.peak, 4.0)
        self.assertEqual(self.fsm.stage, FallStage.IDLE)

    def test_sustained_moderate_motion_fails_rms(self):
        impact_ms = self._impact()
        verdict = None
        t = impact_ms
        while verdict is None:
            t += 20
            verdict = self.fsm.update_linear(1.5, t)
        # Peak is within limits but the energy is not
        self.assertLessEqual(verdict.peak, self.config.stillness_max_linear)
        self.assertFalse(verdict.is_fall)

    def test_raw_sample_at_boundary_leaves_window_open(self):
        impact_ms = self._impact()
        boundary = impact_ms + self.config.stillness_window_ms
        self.fsm.update_linear(0.2, boundary - 20)
        self.assertIsNone(self.fsm.update_magnitude(9.8, boundary))
        self.assertEqual(self.fsm.stage, FallStage.POST_IMPACT)

        # The linear sample sharing the boundary timestamp is still counted
        verdict = self.fsm.update_linear(5.0, boundary)
        self.assertFalse(verdict.is_fall)
        self.assertEqual(verdict.peak, 5.0)
        self.assertEqual(verdict.sample_count, 2)

    def test_no_linear_samples_fails_stillness(self):
        impact_ms = self._impact()
        boundary = impact_ms + self.config.stillness_window_ms
        self.assertIsNone(self.fsm.update_magnitude(9.8, boundary))
        verdict = self.fsm.update_magnitude(9.8, boundary + 20)
        self.assertIsNotNone(verdict)
        self.assertFalse(verdict.is_fall)
        self.assertEqual(verdict.sample_count, 0)
        self.assertTrue(math.isinf(verdict.rms))
        self.assertEqual(self.fsm.stage, FallStage.IDLE)

    def test_raw_magnitude_ignored_after_impact(self):
        impact_ms = self._impact()
        self.assertIsNone(self.fsm.update_magnitude(1.0, impact_ms + 100))
        self.assertIsNone(self.fsm.update_magnitude(40.0, impact_ms + 200))
        self.assertEqual(self.fsm.stage, FallStage.POST_IMPACT)

    def test_linear_ignored_outside_post_impact(self):
        self.assertIsNone(self.fsm.update_linear(5.0, 0))
        self.assertEqual(self.fsm.stillness_sample_count, 0)

    def test_reset_clears_everything(self):
        impact_ms = self._impact()
        self.fsm.update_linear(0.7, impact_ms + 20)
        self.fsm.reset()
        self.assertEqual(self.fsm.stage, FallStage.IDLE)
        self.assertIsNone(self.fsm.free_fall_start_ms)
        self.assertIsNone(self.fsm.free_fall_confirmed_ms)
        self.assertIsNone(self.fsm.impact_ms)
        self.assertIsNone(self.fsm.stillness_start_ms)
        self.assertEqual(self.fsm.stillness_sample_count, 0)
        self.assertEqual(self.fsm.stillness_energy, 0.0)
        self.assertEqual(self.fsm.stillness_peak, 0.0)

if __name__ == "__main__":
    unittest.main()
