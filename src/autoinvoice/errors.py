"""Exception types raised across the autoinvoice pipeline."""


class AutoinvoiceError(Exception):
    """Base class for autoinvoice errors."""


class MailProviderError(AutoinvoiceError):
    """The mail provider could not be reached or rejected a request."""


class AuthenticationError(AutoinvoiceError):
    """No usable credentials for the current user."""


class RasterizationError(AutoinvoiceError):
    """A PDF could not be converted into page images."""


class StorageError(AutoinvoiceError):
    """Object storage did not accept an upload."""
