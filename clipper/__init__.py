"""
Highlight clipper - turns long videos into short vertical highlight clips.
"""

__version__ = "1.0.0"
