"""
Utility modules for the sitemap crawler.
"""

from .config import Config, ConfigManager, CrawlOptions, load_config

__all__ = ['Config', 'ConfigManager', 'CrawlOptions', 'load_config']
