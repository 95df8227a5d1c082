import logging
import threading

import numpy as np


class MonitorSnapshot:
    """
    The most recent raw (measurement, sine reference) pairs of a burst for a live display
    (vumeter). The processing thread is the only writer and must never wait for a reader,
    readers on the other hand always get a complete snapshot.
    """
    def __init__(self):
        self._lock = threading.Lock()
        self._data: list[tuple[float, float]] = []

    @property
    def data(self) -> list[tuple[float, float]]:
        with self._lock:
            return list(self._data)

    def update(self, measurement: np.ndarray, sin: np.ndarray, valid: np.ndarray, capacity: int) -> bool:
        """
        Replaces the snapshot with the last <capacity> valid samples of the burst in chronological
        order. If a reader holds the lock the update is skipped and the old snapshot is kept.
        """
        if not self._lock.acquire(blocking=False):
            logging.warning("Monitor snapshot is locked, skipped update")
            return False
        try:
            indices = np.flatnonzero(valid)
            indices = indices[max(len(indices) - capacity, 0):]
            self._data = list(zip(np.asarray(measurement, dtype=float)[indices].tolist(),
                                  np.asarray(sin, dtype=float)[indices].tolist()))
        finally:
            self._lock.release()
        return True

    def clear(self) -> None:
        with self._lock:
            self._data = []
