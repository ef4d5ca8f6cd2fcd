"""Configuration module for the Marketplace Listing Pipeline."""

from listing_pipeline.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
