"""
zkface - Zero-Knowledge Facial Match Protocol

Registers a facial feature vector and later proves, through a zero-knowledge
equality circuit, that a freshly captured vector matches it within a fixed
numeric tolerance.

The package covers fixed-point quantization, the squared-distance pre-check,
orchestration of the external proving engine and the match session state
machine with its live scan loop.
"""

__version__ = "1.0.0"
__author__ = "zkface developers"
