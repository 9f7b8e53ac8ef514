"""
freebusy - calendar availability engine for the booking backend.
"""

__version__ = "0.1.0"
