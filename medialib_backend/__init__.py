"""
Media library index backend: crawl-driven media discovery for a site and the
HTTP surface serving the derived views.
"""

__version__ = "0.1.0"
