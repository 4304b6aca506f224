"""
Core modules for token-lens.

This package contains the pure computation: pricing, usage aggregation,
clarity signals and metrics, coaching tips, and insights.
"""
