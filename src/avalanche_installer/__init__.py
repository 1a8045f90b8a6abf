"""
avalanche-installer: fetch avalanchego and subnet-evm release binaries from
GitHub, and mirror them through S3 for fleet-wide distribution.
"""

__version__ = "0.1.0"
