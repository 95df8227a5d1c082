import logging
import time

import lockin
from lockin.hardware import audio_input


def main():
    """
    Runs the lock-in on a simulated 500 Hz chopper until interrupted.
    """
    logging.basicConfig(level=logging.DEBUG, format="[%(threadName)s] %(levelname)s %(asctime)s: %(message)s",
                        datefmt="%Y-%m-%d %H:%M:%S")
    logging.captureWarnings(True)
    logging.info("Started Program")
    audio_format = audio_input.AudioFormat(sample_rate=48000)
    simulator = audio_input.ChopperSimulator(audio_format.sample_rate, frequency=500, amplitude=1e6, phase=0.5,
                                             noise=1e6)
    source = audio_input.BufferedInput(audio_format.sample_rate, periodic=True)
    lock_in = lockin.amplifier.LockInAmplifier()
    lock_in.observers.append(lambda t, x, y: logging.info("t = %.2f s, x = %.1f, y = %.1f", t, x, y))
    if not lock_in.start(source, audio_format):
        return
    try:
        while True:
            source.write(simulator.burst_bytes(lock_in.output_period))
            time.sleep(lock_in.output_period)
    except KeyboardInterrupt:
        logging.info("Auto phase: %.3f rad", lock_in.auto_phase())
    finally:
        lock_in.stop()
        logging.info("Program closed")


if __name__ == "__main__":
    main()
