"""
Error taxonomy shared by the stores, the dashboard controller and the notifier.
"""


class GlamCRMError(Exception):
    """Base class for all Glam CRM errors."""


class ValidationError(GlamCRMError, ValueError):
    """A required field is missing or malformed. Blocks the submission."""


class NotFoundError(GlamCRMError, LookupError):
    """An update targeted a record id the store does not know."""


class TransientIOError(GlamCRMError):
    """Network or persistence failure while fetching or saving."""
