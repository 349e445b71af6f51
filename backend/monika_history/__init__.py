"""
Monika probe history persistence and Symon reporting.
"""
__version__ = "0.1.0"
