"""
Core configuration types for authcookie.
"""

from .config import DEFAULT_TIMEOUT, OverrideMode, AuthPolicy, LocationPolicies

__all__ = ["DEFAULT_TIMEOUT", "OverrideMode", "AuthPolicy", "LocationPolicies"]
