"""Terminal failures that abort a whole conversion run."""


class ConversionError(Exception):
    """Base class for errors that leave no usable batch."""


class MetadataError(ConversionError):
    """Metadata records are missing or malformed."""


class ArchiveError(ConversionError):
    """The export archive cannot be read."""
