"""
Core exceptions for the harvester application.

This module defines a hierarchy of custom exceptions to allow for granular
error handling and clear separation of failure domains. Only
ConfigurationError and PersistenceError are fatal to a run; everything else
is absorbed per unit of work by the pipeline.
"""


class HarvesterError(Exception):
    """Base exception for all component-specific errors."""
    pass


# --- Configuration Errors ---

class ConfigurationError(HarvesterError):
    """Raised for invalid settings or caller input, before any network I/O."""
    pass


# --- Infrastructure Errors ---

class InfrastructureError(HarvesterError):
    """Base class for errors related to external systems (network, disk)."""
    pass


class ResourceNotFoundError(InfrastructureError):
    """Raised when a remote index or archive does not exist."""
    pass


class TransportError(InfrastructureError):
    """Raised for network failures other than a plain not-found."""
    pass


class PersistenceError(InfrastructureError):
    """Raised when the result collection cannot be written."""
    pass


# --- Domain/Business Logic Errors ---

class DomainError(HarvesterError):
    """Base class for errors related to malformed catalog content."""
    pass


class RecordParseError(DomainError):
    """Raised when an index line has malformed numeric or date fields."""
    pass


class DecodeError(DomainError):
    """Raised when an archive cannot be decoded into profile arrays."""
    pass
