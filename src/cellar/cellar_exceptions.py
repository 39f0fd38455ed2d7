"""
This file contains the exceptions raised by cellar. Every failure in the core is
a typed exception the caller can catch and render; nothing here is fatal.
"""


class CellarException(Exception):
    """
    Exceptions raised by cellar
    """

    def __init__(self, message: str):
        super().__init__(message)


# Resolution errors


class ReleaseError(CellarException):
    """Base class for failures talking to the release API."""


class ReleaseNotFound(ReleaseError):
    """The release API answered with a non-success status."""


class AssetNotFound(ReleaseError):
    """No asset of the release satisfied the asset predicate."""


class DownloadFailed(ReleaseError):
    """The asset download itself answered with a non-success status."""


# Integrity errors


class IntegrityError(CellarException):
    """Base class for download integrity failures."""


class AssetTooLarge(IntegrityError):
    """The declared asset size exceeds the configured ceiling."""


class SizeMismatch(IntegrityError):
    """Transferred bytes or Content-Length differ from the declared asset size."""


class UnsafeAssetName(IntegrityError):
    """The asset name cannot be used as a local file name."""


# Extraction-safety errors


class ExtractionError(CellarException):
    """Base class for archive extraction failures."""


class UnsafeArchivePath(ExtractionError):
    """An archive entry would land outside the destination directory."""


class TooManyFiles(ExtractionError):
    """The archive holds more entries than allowed."""


class ArchiveTooLarge(ExtractionError):
    """The declared uncompressed size of the archive exceeds the limit."""


class UnsupportedArchive(ExtractionError):
    """The archive format is not one cellar knows how to unpack."""


# Compilation errors


class CompilationError(CellarException):
    """Base class for launch command validation failures."""


class MissingRuntimePath(CompilationError):
    """No runner path has been resolved for the launch."""


class UnclosedQuote(CompilationError):
    """The launch options string has an unterminated double quote."""


class DuplicatePlaceholder(CompilationError):
    """The %command% placeholder occurs more than once."""


class UnsafeOption(CompilationError):
    """A launch options token failed the sanitizer."""


class InvalidUpscalingMode(CompilationError):
    """The gamescope upscaling mode is not recognised."""


# Execution errors


class ExecutionError(CellarException):
    """Base class for game process failures."""


class LaunchFailed(ExecutionError):
    """The game exited non-zero and reported critical errors."""

    def __init__(self, message: str, return_code: int = 1):
        super().__init__(message)
        self.return_code = return_code


class InvalidGameSetup(ExecutionError):
    """The game executable or its wine prefix is missing or incomplete."""


# Registry errors


class RunnerError(CellarException):
    """A runner directory operation failed."""


class RunnerNotFound(RunnerError):
    """No installed runner matched the requested version."""
