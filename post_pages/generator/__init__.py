"""Static site output for rendered posts."""

from .site_generator import SiteGenerator, build_loader

__all__ = ["SiteGenerator", "build_loader"]
