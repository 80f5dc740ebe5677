class DispatcherError(Exception):
    """Base class for errors the dispatch core reports to callers"""


class NotFoundError(DispatcherError):
    """A worker, task or job id that the store does not know"""

    def __init__(self, entity_kind: str, entity_id: str):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(f"{entity_kind.capitalize()} with ID {entity_id} not found.")

    @property
    def message(self) -> str:
        return str(self)


class UnknownOperationError(DispatcherError):
    """The caller asked for an operation that is not offered"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")

    @property
    def message(self) -> str:
        return str(self)
