"""
Validation module for StrmExtract.

Provides plugin configuration loading and validation.
"""

from validation.config import StrmExtractConfig, validate_config

__all__ = [
    'StrmExtractConfig',
    'validate_config',
]
