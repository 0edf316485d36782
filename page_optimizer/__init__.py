"""Page Optimizer: SEO content-optimization job pipeline for WordPress pages."""

__version__ = "1.0.0"
