"""Adaptive persona parameter learning.

Subpackages:
- persona: the bounded persona parameter vector, defaults, presets, stores
- learning: the feedback-driven learning engine and its components
"""
