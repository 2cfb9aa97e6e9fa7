"""ctrlw - pairing-session lifecycle and token rotation core."""

__version__ = "0.1.0"
