"""Record enrichment from external services."""

from mongo_extract.enrichment.address import AddressEnricher

__all__ = ["AddressEnricher"]
