"""
API of the software lock-in amplifier. The measurement is expected on the first and the chopper
(reference) on the second channel of a 32 bit unsigned PCM stream.
"""
import logging
import math
from dataclasses import dataclass
from typing import Callable

import numpy as np

from lockin.algorithm import _utilities, demodulation, monitor, reference
from lockin.hardware import audio_input


@dataclass
class LockInConfiguration:
    output_period: float = 0.5  # s
    integration_time: float = 3.0  # s
    monitor_time: float = 0.02  # s, ten periods of a 500 Hz chopper
    phase: float = 0.0  # rad


class LockInAmplifier:
    """
    Demodulates bursts of (measurement, reference) pairs. Every notification of the audio input
    is one processing cycle. Once <integration_time> seconds of samples are collected every
    cycle produces a time stamped (x, y) value which is passed to the observers.

    The time stamp refers to the center of the integration window.
    """
    def __init__(self, configuration: LockInConfiguration | None = None):
        if configuration is None:
            configuration = _utilities.load_configuration(LockInConfiguration, "lock_in", "session")
        self._configuration = configuration
        self._audio_input: audio_input.AudioInput | None = None
        self._byte_order = audio_input.ByteOrder.LITTLE_ENDIAN
        self.sample_integration = 0
        self.sample_monitor = 0
        self.time_value = 0.0
        self._window: demodulation.IntegrationWindow | None = None
        self._last_value: demodulation.LockIn | None = None
        self._monitor = monitor.MonitorSnapshot()
        self.observers: list[Callable[[float, float, float], None]] = []
        self.no_lock_observers: list[Callable[[float], None]] = []

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        return f"{class_name}(configuration={self._configuration}, running={self.running})"

    @property
    def running(self) -> bool:
        return self._audio_input is not None

    @property
    def configuration(self) -> LockInConfiguration:
        return self._configuration

    def _configurable(self, name: str) -> bool:
        if self.running:
            logging.warning("Cannot set %s, lock-in is running", name)
            return False
        return True

    def _set_duration(self, name: str, value: float) -> None:
        if not self._configurable(name):
            return
        if value <= 0:
            logging.error("%s has to be positive, got %s", name, value)
            return
        setattr(self._configuration, name, value)

    @property
    def output_period(self) -> float:
        return self._configuration.output_period

    @output_period.setter
    def output_period(self, output_period: float) -> None:
        self._set_duration("output_period", output_period)

    @property
    def integration_time(self) -> float:
        return self._configuration.integration_time

    @integration_time.setter
    def integration_time(self, integration_time: float) -> None:
        self._set_duration("integration_time", integration_time)

    @property
    def monitor_time(self) -> float:
        return self._configuration.monitor_time

    @monitor_time.setter
    def monitor_time(self, monitor_time: float) -> None:
        self._set_duration("monitor_time", monitor_time)

    @property
    def phase(self) -> float:
        return self._configuration.phase

    @phase.setter
    def phase(self, phase: float) -> None:
        if self._configurable("phase"):
            self._configuration.phase = phase

    @property
    def last_value(self) -> demodulation.LockIn | None:
        return self._last_value

    def start(self, source: audio_input.AudioInput, audio_format: audio_input.AudioFormat) -> bool:
        if self.running:
            logging.warning("Lock-in is already running, stop it before starting it again")
            return False
        if not audio_format.is_valid:
            logging.error("Audio format %s is not valid", audio_format)
            return False
        if not audio_input.is_format_supported(audio_format):
            logging.error("Audio format %s is not supported by the lock-in", audio_format)
            return False
        if not source.supports(audio_format):
            logging.error("Audio format %s is not supported by %s", audio_format, source)
            return False
        self._byte_order = audio_format.byte_order
        # The time value refers to the center of the integration window.
        self.time_value = -self.integration_time / 2
        self.sample_integration = max(round(audio_format.sample_rate * self.integration_time), 1)
        self.sample_monitor = max(round(audio_format.sample_rate * self.monitor_time), 1)
        self._window = demodulation.IntegrationWindow(self.sample_integration)
        self._last_value = None
        self._monitor.clear()
        self._audio_input = source
        source.start(self.interpret_input, self.output_period)
        logging.info("Started lock-in with %d samples integration and %d samples monitor",
                     self.sample_integration, self.sample_monitor)
        return True

    def stop(self) -> bool:
        if not self.running:
            logging.warning("Lock-in is not running")
            return False
        self._audio_input.stop()
        self._audio_input = None
        logging.info("Stopped lock-in")
        return True

    def auto_phase(self) -> float:
        """
        Phase of the last demodulated value including the configured phase offset. Setting the
        phase to this value rotates the signal completely into y.
        """
        if not self.running:
            logging.warning("Lock-in is not running, no phase available")
            return 0.0
        if self._last_value is None:
            return self.phase
        return self.phase + math.atan2(self._last_value.y, self._last_value.x)

    def monitor_data(self) -> list[tuple[float, float]]:
        return self._monitor.data

    def interpret_input(self) -> None:
        """
        Processing cycle, called by the audio input on every notification.
        """
        source = self._audio_input
        if source is None:
            return
        self.time_value += self.output_period
        measurement, reference_signal = audio_input.decode(source.read(), self._byte_order)
        self.process(measurement, reference_signal)

    def process(self, measurement: np.ndarray, reference_signal: np.ndarray) -> demodulation.LockIn | None:
        """
        Demodulates one decoded burst. The time cursor is not advanced here but by
        interpret_input, callers that feed bursts directly have to update time_value themselves.
        """
        if self._window is None:
            logging.warning("Lock-in was never started, cannot process samples")
            return None
        if not len(measurement):
            logging.debug("No new samples available")
            return None
        synthesis = reference.analyse(reference_signal, self.phase)
        samples = demodulation.demodulate(measurement, synthesis)
        self._monitor.update(measurement, synthesis.sin, synthesis.valid, self.sample_monitor)
        self._window.append(samples)
        if not self._window.is_full:
            return None
        mean = self._window.mean()
        if mean is None:
            logging.warning("No lock on the reference signal at %.3f s", self.time_value)
            for observer in self.no_lock_observers:
                observer(self.time_value)
            return None
        self._last_value = demodulation.LockIn(self.time_value, *mean)
        for observer in self.observers:
            observer(self.time_value, self._last_value.x, self._last_value.y)
        return self._last_value
