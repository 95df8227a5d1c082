"""
Edge detection of the chopper (reference) channel and synthesis of the sine and cosine
references used for the demodulation.
"""
from dataclasses import dataclass
from typing import Final

import numpy as np


@dataclass
class ReferencePeriod:
    start: int
    length: int


@dataclass
class ReferenceSynthesis:
    sin: np.ndarray
    cos: np.ndarray
    valid: np.ndarray
    edges: np.ndarray

    def __len__(self) -> int:
        return len(self.valid)

    @property
    def valid_count(self) -> int:
        return int(np.count_nonzero(self.valid))


FULL_CYCLE: Final = 2 * np.pi


def burst_average(reference: np.ndarray) -> int:
    """
    Integer truncating mean of the reference channel. It is used as threshold for the edge
    detection and computed again for every burst, so slow drifts of the chopper level are
    followed.
    """
    if not len(reference):
        return 0
    return int(np.sum(reference, dtype=np.uint64) // np.uint64(len(reference)))


def rising_edges(reference: np.ndarray, average: int) -> np.ndarray:
    """
    Indices i where the reference is above the average and was not above it at i - 1.
    """
    above = np.asarray(reference) > average
    return np.flatnonzero(~above[:-1] & above[1:]) + 1


def analyse(reference: np.ndarray, phase: float, average: int | None = None) -> ReferenceSynthesis:
    """
    Splits the reference into periods between consecutive rising edges and synthesises for
    every closed period of length L

        angle(i) = 2π * i / L + phase,  i = 0, ..., L - 1

    The period is derived again for every cycle of the chopper, so jitter of the chopper
    frequency does not accumulate a phase error. Each period ends with (and includes) its
    rising edge sample. The samples up to the first edge and after the last edge cannot be
    assigned to a full period and are marked as invalid.
    """
    reference = np.asarray(reference)
    size = len(reference)
    sin = np.zeros(size)
    cos = np.zeros(size)
    valid = np.zeros(size, dtype=bool)
    if not size:
        return ReferenceSynthesis(sin, cos, valid, np.empty(0, dtype=np.intp))
    if average is None:
        average = burst_average(reference)
    edges = rising_edges(reference, average)
    if len(edges) < 2:
        return ReferenceSynthesis(sin, cos, valid, edges)
    starts = edges[:-1] + 1
    lengths = np.diff(edges)
    indices = np.arange(starts[0], edges[-1] + 1)
    period_start = np.repeat(starts, lengths)
    period_length = np.repeat(lengths, lengths)
    angle = FULL_CYCLE * (indices - period_start) / period_length + phase
    sin[indices] = np.sin(angle)
    cos[indices] = np.cos(angle)
    valid[indices] = True
    return ReferenceSynthesis(sin, cos, valid, edges)


def periods(synthesis: ReferenceSynthesis) -> list[ReferencePeriod]:
    edges = synthesis.edges
    return [ReferencePeriod(start=int(start) + 1, length=int(end - start)) for start, end in zip(edges[:-1], edges[1:])]
