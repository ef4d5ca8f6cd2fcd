"""
Marketplace Listing Pipeline.

Generates platform-specific marketplace listing content for a product,
checks it against marketplace and German e-commerce compliance rules and
drives it through an eight step review and distribution pipeline built on
LangGraph and Claude.
"""

__version__ = "1.0.0"
__author__ = "Marketplace Listing Team"

# Lazy imports to avoid circular dependencies
def get_pipeline():
    """Get the ContentPipeline class (lazy import)."""
    from listing_pipeline.pipeline.orchestrator import ContentPipeline
    return ContentPipeline

__all__ = ["get_pipeline", "__version__"]
