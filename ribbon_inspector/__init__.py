"""
Ribbon Inspector: command-bar visibility comparison for Dataverse environments.
"""

__version__ = "0.1.0"
