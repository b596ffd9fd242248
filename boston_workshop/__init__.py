"""Boston Housing machine-learning workshop."""

__version__ = "0.1.0"
