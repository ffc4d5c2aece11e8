"""
EdgeFinder: multi-book odds aggregation and edge detection.
"""

__version__ = "0.1.0"
