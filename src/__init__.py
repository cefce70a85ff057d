"""
County Property Data Pipeline

Top-level source package. The application code lives in ``src.countydata``.
"""

__version__ = "0.1.0"
