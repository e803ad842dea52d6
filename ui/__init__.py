"""
UI package for the storefront
Contains user interface implementations
"""

from .console_ui import ConsoleStoreUI

__all__ = [
    'ConsoleStoreUI'
]
