"""
Core package for the storefront backend
Contains the service wiring used by the web app and the console UI
"""

from .storefront import Storefront

__all__ = [
    'Storefront'
]
