"""Coursework package

Client-side submission lifecycle for the learning platform: attempts, quiz
timing, two-phase uploads, status derivation and score presentation.
"""

__version__ = "0.3.0"
