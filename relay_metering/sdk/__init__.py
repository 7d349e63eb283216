"""
SDK for Relay Metering.

Provides the usage meter a relay calls once per billing event.
"""

from .meter import UsageMeter

__all__ = ["UsageMeter"]
