"""
Unit tests for the demodulation and the integration window of the lock-in amplifier.
"""
import logging

import numpy as np
import pytest

logging.disable()

from lockin.algorithm import demodulation, reference
from lockin.hardware import audio_input


def samples(x, y, valid) -> demodulation.DemodulatedSamples:
    return demodulation.DemodulatedSamples(np.array(x, dtype=float), np.array(y, dtype=float),
                                           np.array(valid, dtype=bool))


class TestDemodulate:
    def test_products(self):
        synthesis = reference.ReferenceSynthesis(sin=np.array([0.0, 1.0, 0.5]), cos=np.array([0.0, 0.0, -0.5]),
                                                 valid=np.array([False, True, True]), edges=np.array([0]))
        result = demodulation.demodulate(np.array([7, 3, 4], dtype=np.uint32), synthesis)
        np.testing.assert_allclose(result.x, [0, 3, 2])
        np.testing.assert_allclose(result.y, [0, 0, -2])
        np.testing.assert_array_equal(result.valid, [False, True, True])

    def test_length_mismatch(self):
        synthesis = reference.analyse(np.zeros(4, dtype=np.uint32), 0.0)
        with pytest.raises(ValueError):
            demodulation.demodulate(np.zeros(5, dtype=np.uint32), synthesis)

    def test_validity_is_not_inferred_from_value(self):
        """
        A valid product may have any value, also the one that marked invalid samples in former
        implementations.
        """
        synthesis = reference.ReferenceSynthesis(sin=np.array([0.5]), cos=np.array([0.5]),
                                                 valid=np.array([True]), edges=np.array([0]))
        result = demodulation.demodulate(np.array([1], dtype=np.uint32), synthesis)
        assert result.valid.all()


class TestIntegrationWindow:
    @pytest.fixture(autouse=True)
    def setup(self):
        self.window = demodulation.IntegrationWindow(capacity=10)

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            demodulation.IntegrationWindow(capacity=0)

    def test_cold_start(self):
        self.window.append(samples(np.ones(9), np.ones(9), np.ones(9)))
        assert not self.window.is_full
        assert self.window.mean() is None
        self.window.append(samples([1], [1], [True]))
        assert self.window.is_full
        assert self.window.mean() == (1.0, 1.0)

    def test_fifo_eviction(self):
        self.window.append(samples(np.arange(6), np.zeros(6), np.ones(6)))
        self.window.append(samples(np.arange(6, 12), np.zeros(6), np.ones(6)))
        assert len(self.window) == 10
        # 2, ..., 11 remain
        assert self.window.mean()[0] == pytest.approx(6.5)

    def test_burst_larger_than_capacity(self):
        self.window.append(samples(np.arange(25), np.arange(25), np.ones(25)))
        assert len(self.window) == 10
        assert self.window.mean() == (pytest.approx(19.5), pytest.approx(19.5))

    def test_invalid_samples_excluded(self):
        """
        Invalid samples take place in the window but the mean is taken over the valid ones only.
        """
        self.window.append(samples([1, 100, 2, 100, 3], [4, -100, 5, -100, 6], [1, 0, 1, 0, 1]))
        self.window.append(samples([100] * 5, [100] * 5, [0] * 5))
        assert self.window.valid_count == 3
        assert self.window.mean() == (pytest.approx(2.0), pytest.approx(5.0))

    def test_all_invalid_has_no_mean(self):
        self.window.append(samples(np.ones(10), np.ones(10), np.zeros(10)))
        assert self.window.is_full
        assert self.window.valid_count == 0
        assert self.window.mean() is None


class TestLockIn:
    def test_polar(self):
        value = demodulation.LockIn(time=1.0, x=3.0, y=4.0)
        assert value.amplitude == pytest.approx(5.0)
        assert value.phase == pytest.approx(np.arctan2(4, 3))


class TestDemodulationAccuracy:
    """
    A sinusoidal measurement phase locked to a 500 Hz chopper. The synthesised reference starts
    one sample after the rising edge, therefore the measured phase is shifted by one sample
    (2π / 96 at 48 kHz).
    """
    SAMPLE_RATE = 48000
    FREQUENCY = 500
    AMPLITUDE = 1e6
    MEASUREMENT_PHASE = 0.7
    REFERENCE_PHASE = 0.2

    def _demodulate(self, noise: float, bursts: int) -> tuple[float, float]:
        simulator = audio_input.ChopperSimulator(TestDemodulationAccuracy.SAMPLE_RATE,
                                                 TestDemodulationAccuracy.FREQUENCY,
                                                 TestDemodulationAccuracy.AMPLITUDE,
                                                 phase=TestDemodulationAccuracy.MEASUREMENT_PHASE,
                                                 noise=noise, seed=42)
        burst_size = TestDemodulationAccuracy.SAMPLE_RATE // 2
        window = demodulation.IntegrationWindow(capacity=bursts * burst_size)
        for _ in range(bursts):
            measurement, ref = simulator.burst(burst_size)
            synthesis = reference.analyse(ref, TestDemodulationAccuracy.REFERENCE_PHASE)
            window.append(demodulation.demodulate(measurement, synthesis))
        return window.mean()

    @property
    def expected(self) -> tuple[float, float]:
        delta = (TestDemodulationAccuracy.MEASUREMENT_PHASE - TestDemodulationAccuracy.REFERENCE_PHASE
                 + 2 * np.pi * TestDemodulationAccuracy.FREQUENCY / TestDemodulationAccuracy.SAMPLE_RATE)
        amplitude = TestDemodulationAccuracy.AMPLITUDE / 2
        return amplitude * np.cos(delta), amplitude * np.sin(delta)

    def test_noise_free(self):
        x, y = self._demodulate(noise=0, bursts=2)
        expected_x, expected_y = self.expected
        assert x == pytest.approx(expected_x, abs=1e-4 * TestDemodulationAccuracy.AMPLITUDE)
        assert y == pytest.approx(expected_y, abs=1e-4 * TestDemodulationAccuracy.AMPLITUDE)

    def test_noisy_measurement(self):
        """
        With a noise twice as large as the signal the mean over 4 s is still within 2 %.
        """
        expected_x, expected_y = self.expected
        x, y = self._demodulate(noise=2e6, bursts=8)
        assert np.hypot(x - expected_x, y - expected_y) < 2e-2 * TestDemodulationAccuracy.AMPLITUDE
