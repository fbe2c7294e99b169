"""Import pipeline error taxonomy.

Run-level errors (FetchError, ParseError) are fatal to one source's run and are
stored on ImportRun.error. Item-level errors (ValidationError, StoreError) are
recorded as one failed item and never abort the batch.
"""


class ImportPipelineError(Exception):
    pass


class FetchError(ImportPipelineError):
    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(ImportPipelineError):
    pass


class ValidationError(ImportPipelineError):
    pass


class MissingExternalId(ValidationError):
    def __init__(self) -> None:
        super().__init__("No external id: guid, id, link and url are all empty")


class ExternalIdTooLong(ValidationError):
    def __init__(self, field: str, length: int, max_length: int) -> None:
        super().__init__(f"External id from {field} is {length} characters, limit is {max_length}")
        self.field = field


class MissingRequiredFields(ValidationError):
    def __init__(self, fields: list[str]) -> None:
        super().__init__(f"Missing required fields: {', '.join(fields)}")
        self.fields = fields


class StoreError(ImportPipelineError):
    pass


class RetryBatch(ImportPipelineError):
    """Raised by the worker when some items hit store errors and attempts remain.

    Carries only the items that still need a write, so the queue retries those
    and nothing already recorded.
    """

    def __init__(self, items: list[dict], reason: str) -> None:
        super().__init__(f"{len(items)} item(s) need retry: {reason}")
        self.items = items
        self.reason = reason
