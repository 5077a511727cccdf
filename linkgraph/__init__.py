"""
Link Graph Crawler

A polite breadth-first crawler that records page metadata and a backlink
graph in a remote wide-column store.
"""

__version__ = "1.0.0"
__description__ = "Breadth-first crawler building a backlink graph in a wide-column store"
