"""StoreSync backend: Shopify store mirror with live dashboard metrics."""

__version__ = "0.1.0"
