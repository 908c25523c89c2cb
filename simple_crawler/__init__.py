"""
Simple Crawler

A bounded, multi-worker web crawler that discovers the links of a site.
"""

__version__ = "1.0.0"
__description__ = "A bounded multi-worker web crawler with Bloom filter URL deduplication"
