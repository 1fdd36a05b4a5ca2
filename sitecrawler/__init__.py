"""
Sitemap Crawler

Fetches every in-scope page reachable from a site's XML sitemap.
"""

__version__ = "1.0.0"
__description__ = "A concurrent sitemap-driven web crawler"
