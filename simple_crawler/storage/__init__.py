"""
Storage layer for discovered links.
"""

from .link_storage import LinkStorage, ConsoleLinkStorage, FileLinkStorage

__all__ = ['LinkStorage', 'ConsoleLinkStorage', 'FileLinkStorage']
