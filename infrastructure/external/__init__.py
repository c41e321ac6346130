"""
Adapters for external providers.
"""
