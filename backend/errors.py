class ConfigurationError(RuntimeError):
    """Required credentials or environment settings are missing."""


class StorageError(RuntimeError):
    """Object storage could not issue a URL or return an object."""


class UnsupportedFileTypeError(ValueError):
    pass


class FileTooLargeError(ValueError):
    def __init__(self, file_type: str, max_bytes: int):
        self.file_type = file_type
        self.max_bytes = max_bytes
        super().__init__(f"File size exceeds limit ({max_bytes / 1024 / 1024:.1f}MB) for type {file_type}")


class ExtractionError(RuntimeError):
    """The LLM call failed or returned output that does not fit the schema."""


class ReportNotFoundError(LookupError):
    pass


class TestResultNotFoundError(LookupError):
    pass


class MissingTestDataError(LookupError):
    pass
