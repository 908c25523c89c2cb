"""
Utility modules for the crawler.
"""

from .config import Config, ConfigManager, CrawlSettings, load_config

__all__ = ['Config', 'ConfigManager', 'CrawlSettings', 'load_config']
