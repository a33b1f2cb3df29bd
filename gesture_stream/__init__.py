"""
Gesture Stream
==============

Voice and hand-gesture control for a live generative video session.

Packages:
    - core: shared types, errors, event bus, session state machine,
      interaction dispatcher and the gesture pipeline
    - modules.capture: camera access and the fixed-cadence capture loop
    - modules.recognition: rate governor, remote classifier, debouncer
    - modules.voice: push-to-talk recording and transcription
    - modules.streaming: streaming collaborator boundary and slide content
    - modules.utils: configuration and logging
    - server: HTTP boundary service (transcription, gesture classification)
"""

__version__ = "1.0.0"
__author__ = "HCI Team"
