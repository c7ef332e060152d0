"""
Contact book REST API.
"""

__version__ = "1.0.0"
