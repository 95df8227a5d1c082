"""
Interface to the audio device that delivers the interleaved measurement and reference samples.
The device itself (enumeration, format negotiation) is provided by the host application, this
module only defines the contract and an in-memory implementation of it.
"""
import enum
import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Final

import numpy as np
from overrides import final, override


class ByteOrder(enum.Enum):
    BIG_ENDIAN = ">"
    LITTLE_ENDIAN = "<"


class SampleType(enum.Enum):
    UNKNOWN = 0
    SIGNED_INT = 1
    UNSIGNED_INT = 2
    FLOAT = 3


PCM_CODEC: Final = "audio/pcm"
CHANNELS: Final = 2
SAMPLE_SIZE: Final = 32  # bits
PAIR_SIZE: Final = CHANNELS * SAMPLE_SIZE // 8  # bytes


@dataclass
class AudioFormat:
    sample_rate: int = 0
    channel_count: int = CHANNELS
    sample_size: int = SAMPLE_SIZE
    sample_type: SampleType = SampleType.UNSIGNED_INT
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    codec: str = PCM_CODEC

    @property
    def is_valid(self) -> bool:
        return (self.sample_rate > 0 and self.channel_count > 0 and self.sample_size > 0
                and self.sample_type != SampleType.UNKNOWN and bool(self.codec))


def is_format_supported(audio_format: AudioFormat) -> bool:
    """
    Only raw PCM with one measurement and one reference channel of unsigned 32 bit integers can
    be demodulated.
    """
    if audio_format.codec != PCM_CODEC:
        return False
    if audio_format.channel_count != CHANNELS:
        return False
    if audio_format.sample_type != SampleType.UNSIGNED_INT:
        return False
    if audio_format.sample_size != SAMPLE_SIZE:
        return False
    return True


def decode(raw: bytes, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> tuple[np.ndarray, np.ndarray]:
    """
    Splits interleaved (measurement, reference) pairs into the two channels. Trailing bytes
    which do not form a complete pair are ignored.
    """
    usable = len(raw) - len(raw) % PAIR_SIZE
    samples = np.frombuffer(raw[:usable], dtype=np.dtype(f"{byte_order.value}u4"))
    return samples[0::2].astype(np.uint32), samples[1::2].astype(np.uint32)


def encode(measurement: np.ndarray, reference: np.ndarray,
           byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> bytes:
    samples = np.empty(2 * len(measurement), dtype=np.dtype(f"{byte_order.value}u4"))
    samples[0::2] = measurement
    samples[1::2] = reference
    return samples.tobytes()


class AudioInput(ABC):
    """
    Base class for sample sources. A source buffers incoming bytes and periodically calls the
    registered notify callback, which then reads all complete sample pairs.
    """
    def __init__(self):
        self._notify: Callable[[], None] | None = None
        self._notify_interval = 0.0
        self._running = threading.Event()

    def __repr__(self) -> str:
        name_space = os.path.splitext(os.path.basename(__file__))[0]
        class_name = self.__class__.__name__
        return f"{name_space}.{class_name}(running={self.running}, notify_interval={self._notify_interval})"

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def notify_interval(self) -> float:
        return self._notify_interval

    @abstractmethod
    def supports(self, audio_format: AudioFormat) -> bool:
        ...

    @abstractmethod
    def bytes_available(self) -> int:
        ...

    @abstractmethod
    def _read(self, size: int) -> bytes:
        ...

    @final
    def read(self) -> bytes:
        """
        Returns all buffered complete sample pairs, an incomplete pair stays in the buffer.
        """
        available = self.bytes_available()
        return self._read(available - available % PAIR_SIZE)

    def start(self, notify: Callable[[], None], notify_interval: float) -> None:
        self._notify = notify
        self._notify_interval = notify_interval
        self._running.set()
        logging.info("Started %s", self.__class__.__name__)

    def stop(self) -> None:
        self._running.clear()
        self._notify = None
        logging.info("Stopped %s", self.__class__.__name__)

    @final
    def notify(self) -> None:
        callback = self._notify
        if self._running.is_set() and callback is not None:
            callback()


class BufferedInput(AudioInput):
    """
    In-memory sample source. Bytes are pushed with write(), notifications are either triggered
    manually or, with periodic=True, by a notifier thread every notify interval.
    """
    def __init__(self, sample_rate: int, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN, periodic: bool = False):
        AudioInput.__init__(self)
        self.sample_rate = sample_rate
        self.byte_order = byte_order
        self.periodic = periodic
        self._buffer = bytearray()
        self._buffer_lock = threading.Lock()
        self._stopped = threading.Event()
        self._notifier: threading.Thread | None = None

    @override
    def supports(self, audio_format: AudioFormat) -> bool:
        return audio_format.sample_rate == self.sample_rate and audio_format.byte_order == self.byte_order

    @override
    def bytes_available(self) -> int:
        with self._buffer_lock:
            return len(self._buffer)

    @override
    def _read(self, size: int) -> bytes:
        with self._buffer_lock:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            return data

    def write(self, data: bytes) -> None:
        with self._buffer_lock:
            self._buffer.extend(data)

    @override
    def start(self, notify: Callable[[], None], notify_interval: float) -> None:
        super().start(notify, notify_interval)
        if self.periodic:
            # Every run gets its own stop event, a restart cannot revive an old notifier.
            self._stopped = threading.Event()
            self._notifier = threading.Thread(target=self._notify_periodically, args=(self._stopped,),
                                              name="Audio Notify Thread", daemon=True)
            self._notifier.start()

    @override
    def stop(self) -> None:
        self._stopped.set()
        super().stop()
        notifier, self._notifier = self._notifier, None
        if notifier is not None and notifier is not threading.current_thread():
            notifier.join()
        with self._buffer_lock:
            self._buffer.clear()

    def _notify_periodically(self, stopped: threading.Event) -> None:
        while not stopped.wait(timeout=self.notify_interval):
            self.notify()


class ChopperSimulator:
    """
    Generates a square wave chopper reference and a measurement signal that is phase locked to it:

        measurement(t) = offset + amplitude * sin(2π f t + phase) + noise
    """
    REFERENCE_LOW: Final = 0
    REFERENCE_HIGH: Final = 2 ** 31

    def __init__(self, sample_rate: int, frequency: float, amplitude: float, phase: float = 0.0,
                 offset: float = 2 ** 31, noise: float = 0.0, seed: int | None = None):
        self.sample_rate = sample_rate
        self.frequency = frequency
        self.amplitude = amplitude
        self.phase = phase
        self.offset = offset
        self.noise = noise
        self._rng = np.random.default_rng(seed)
        self._sample_index = 0

    def burst(self, size: int) -> tuple[np.ndarray, np.ndarray]:
        index = self._sample_index + np.arange(size)
        self._sample_index += size
        # Multiplying first keeps the cycle boundaries exact for integer frequencies.
        cycle = (self.frequency * index / self.sample_rate) % 1
        reference = np.where(cycle < 0.5, ChopperSimulator.REFERENCE_HIGH,
                             ChopperSimulator.REFERENCE_LOW).astype(np.uint32)
        measurement = self.offset + self.amplitude * np.sin(2 * np.pi * cycle + self.phase)
        if self.noise:
            measurement += self._rng.normal(scale=self.noise, size=size)
        measurement = np.clip(np.rint(measurement), 0, np.iinfo(np.uint32).max).astype(np.uint32)
        return measurement, reference

    def burst_bytes(self, duration: float, byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN) -> bytes:
        measurement, reference = self.burst(round(duration * self.sample_rate))
        return encode(measurement, reference, byte_order)
