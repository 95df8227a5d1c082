from . import audio_input
