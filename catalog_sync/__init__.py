"""Collection catalog <-> spreadsheet sync for the Shopify Admin API."""

__version__ = "0.1.0"
