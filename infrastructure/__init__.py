"""
Infrastructure layer - model provider adapters and resilience helpers.
"""
