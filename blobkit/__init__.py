"""
blobkit: blob storage facade.
"""

__version__ = "0.1.0"
