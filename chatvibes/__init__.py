"""ChatVibes web backend - bot management, shortlinks and TTS test API."""

__version__ = "2.0.0"
