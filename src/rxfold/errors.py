"""Exceptions raised by rxfold.

Whole-file failures (unreadable input, unsupported extension, a format that
is detected but not implemented) are raised to the caller. Row-level problems
never surface as exceptions from the importer; they are collected on the
ImportResult instead.
"""


class RxfoldError(Exception):
    """Base exception for all rxfold errors."""


class ReadError(RxfoldError):
    """The input file could not be turned into rows."""


class UnsupportedFileTypeError(ReadError):
    """File extension is not one of the supported spreadsheet types."""

    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(
            f"Unsupported file type: {extension or '(none)'}. Please use CSV or Excel files."
        )


class UnreadableFileError(ReadError):
    """File is missing, unreadable, or not a valid spreadsheet."""


class FormatError(RxfoldError):
    """Problem selecting a pharmacy format."""


class UnknownFormatError(FormatError):
    """A format hint that names no known pharmacy format."""


class FormatNotImplementedError(FormatError, NotImplementedError):
    """A pharmacy format that is detected but has no extractor yet."""


class ConfigurationError(RxfoldError):
    """Invalid configuration value."""
