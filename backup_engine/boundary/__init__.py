"""
Boundary layer for external system integrations.

Adapters for the relational store, blob storage and the paid scraping
provider.
"""
