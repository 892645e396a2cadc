"""Pricing engine worker: turns Opportunity selectors into Quotes and QuoteLineItems."""

__version__ = "0.1.0"
