"""ShortReel: cut long-form uploads into short clips."""

__version__ = "1.0.0"
