"""Sanitizer: deterministic normalization of captured content.

@public
"""

from timecapsule.sanitizer.fetcher import HttpImageFetcher, ImageFetcher, InlineImage, identify_raster_image
from timecapsule.sanitizer.sanitizer import Sanitizer

__all__ = ["HttpImageFetcher", "ImageFetcher", "InlineImage", "Sanitizer", "identify_raster_image"]
