"""Logging helpers shared by every StrmExtract package."""
