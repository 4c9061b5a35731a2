"""
Core Module

Measurement, alignment gating, capture timing and pattern classification.
"""
