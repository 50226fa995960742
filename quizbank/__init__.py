"""Adaptive quiz bank service: reusable AI-generated quiz banks per objective and difficulty."""

__version__ = "0.1.0"
