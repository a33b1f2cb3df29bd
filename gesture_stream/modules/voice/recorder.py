"""
Push-to-talk microphone recorder.

start() opens an input stream and buffers PCM chunks from the audio
callback; stop() closes the stream and returns the take as WAV bytes.
The device is released on every exit path, including errors.
"""

import io
import logging
import wave

import numpy as np

logger = logging.getLogger(__name__)


def _default_stream_factory(**kwargs):
    # Imported lazily: PortAudio is only needed once recording starts
    import sounddevice as sd
    return sd.InputStream(**kwargs)


class AudioRecorder:
    """Records one utterance at a time from the default microphone."""

    def __init__(self, config: dict = None, stream_factory=None):
        config = config or {}
        self._sample_rate = int(config.get("sample_rate", 16000))
        self._channels = int(config.get("channels", 1))
        self._device = config.get("device")
        self._stream_factory = stream_factory or _default_stream_factory

        self._stream = None
        self._chunks = []

    def start(self):
        """Open the microphone. No-op if already recording."""
        if self._stream is not None:
            return
        self._chunks = []
        stream = self._stream_factory(
            samplerate=self._sample_rate,
            channels=self._channels,
            dtype="int16",
            device=self._device,
            callback=self._on_audio,
        )
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        self._stream = stream
        logger.info("Recording started (%d Hz)", self._sample_rate)

    def _on_audio(self, indata, frames, time_info, status):
        if status:
            logger.debug("Audio status: %s", status)
        self._chunks.append(indata.copy())

    def stop(self) -> bytes:
        """Close the microphone and return the recording as WAV bytes.

        Returns b"" when nothing was recorded.
        """
        self.close()
        chunks, self._chunks = self._chunks, []
        if not chunks:
            return b""
        pcm = np.concatenate(chunks, axis=0)
        if pcm.size == 0:
            return b""
        logger.info("Recording stopped (%.1fs)", len(pcm) / float(self._sample_rate))
        return encode_wav(pcm, self._sample_rate, self._channels)

    def close(self):
        """Release the device without producing audio. Safe to call repeatedly."""
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    @property
    def mime_type(self) -> str:
        return "audio/wav"


def encode_wav(pcm: np.ndarray, sample_rate: int, channels: int = 1) -> bytes:
    """Wrap int16 PCM samples in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(np.asarray(pcm, dtype=np.int16).tobytes())
    return buffer.getvalue()
