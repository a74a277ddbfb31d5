"""
Topic Graph Engine.

Builds knowledge graphs of short topic labels connected by scored,
undirected relationships computed from label similarity.
"""

__version__ = "0.1.0"
