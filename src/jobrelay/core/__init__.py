"""Core domain package for jobrelay.

Core contains normalization, fingerprinting, relevance rules, and the batch
worker without any Telegram or storage-specific code, keeping the business
logic portable.
"""
