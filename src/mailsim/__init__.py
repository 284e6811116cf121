"""mailsim - narrative email simulation driven by a multi-provider generation router."""

__version__ = "0.1.0"
