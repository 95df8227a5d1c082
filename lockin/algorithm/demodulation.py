"""
Demodulation of the measurement channel and the integration window which acts as the low pass
(time constant) of the lock-in amplifier.
"""
import math
from dataclasses import dataclass

import numpy as np
import numpy_ringbuffer

from . import reference


@dataclass
class DemodulatedSamples:
    x: np.ndarray
    y: np.ndarray
    valid: np.ndarray

    def __len__(self) -> int:
        return len(self.valid)


@dataclass
class LockIn:
    time: float
    x: float
    y: float

    @property
    def amplitude(self) -> float:
        return math.hypot(self.x, self.y)

    @property
    def phase(self) -> float:
        return math.atan2(self.y, self.x)


def demodulate(measurement: np.ndarray, synthesis: reference.ReferenceSynthesis) -> DemodulatedSamples:
    """
    Multiplies the measurement with the synthesised sine (in-phase, x) and cosine (quadrature, y).
    Samples without a valid reference are zero and flagged as invalid.
    """
    measurement = np.asarray(measurement, dtype=float)
    if len(measurement) != len(synthesis):
        raise ValueError(f"Measurement ({len(measurement)}) and reference ({len(synthesis)}) differ in length")
    x = np.where(synthesis.valid, synthesis.sin * measurement, 0.0)
    y = np.where(synthesis.valid, synthesis.cos * measurement, 0.0)
    return DemodulatedSamples(x, y, synthesis.valid.copy())


class IntegrationWindow:
    """
    Sliding window over the last <capacity> demodulated samples. Invalid samples occupy their
    place in the window but do not contribute to the mean. A mean is only available once the
    window is completely filled.
    """
    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"Capacity has to be at least one sample, got {capacity}")
        self._capacity = capacity
        self._x = numpy_ringbuffer.RingBuffer(capacity=capacity, dtype=float)
        self._y = numpy_ringbuffer.RingBuffer(capacity=capacity, dtype=float)
        self._valid = numpy_ringbuffer.RingBuffer(capacity=capacity, dtype=bool)

    def __len__(self) -> int:
        return len(self._valid)

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        return f"{class_name}(capacity={self.capacity}, size={len(self)}, valid_count={self.valid_count})"

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return self._valid.is_full

    @property
    def valid_count(self) -> int:
        return int(np.count_nonzero(self._valid[:]))

    def append(self, samples: DemodulatedSamples) -> None:
        # Only the newest <capacity> samples can survive the eviction anyway.
        start = max(len(samples) - self.capacity, 0)
        self._x.extend(samples.x[start:])
        self._y.extend(samples.y[start:])
        self._valid.extend(samples.valid[start:])

    def mean(self) -> tuple[float, float] | None:
        """
        Mean of x and y over the valid samples. None is returned if the window is not filled
        yet or if it does not contain any valid sample (no lock on the reference).
        """
        if not self.is_full:
            return None
        valid = self._valid[:]
        count = np.count_nonzero(valid)
        if not count:
            return None
        return float(np.sum(self._x[:][valid]) / count), float(np.sum(self._y[:][valid]) / count)
