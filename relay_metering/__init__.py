"""
Relay Metering.

Usage-based cost metering and pricing catalog management for a token-billed
API relay.
"""

__version__ = "0.1.0"
