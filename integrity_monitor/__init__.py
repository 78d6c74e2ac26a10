"""
Interview Integrity Monitor

Behavioral-integrity monitoring for remote technical interviews.
"""

__version__ = "1.0.0"
