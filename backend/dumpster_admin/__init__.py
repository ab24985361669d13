"""
ARK Dumpster Rentals admin backend.
"""

__version__ = "1.0.0"
