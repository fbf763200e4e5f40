"""Configuration exceptions for Jira Bug Metrics.

This module provides custom exception classes for configuration-related errors.
"""


class ConfigError(Exception):
    """
    Exception raised for errors in the configuration.

    Configuration errors are fatal: the extraction run stops before any
    request is sent to Jira.
    """
