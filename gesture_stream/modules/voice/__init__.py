"""Push-to-talk recording and speech transcription."""
from .recorder import AudioRecorder
from .transcriber import SpeechTranscriber, TranscriberConfig, VoiceInput

__all__ = ["AudioRecorder", "SpeechTranscriber", "TranscriberConfig", "VoiceInput"]
