"""Errors reported by the signing agent itself."""


class AgentRequestError(Exception):
    """The agent replied to a request with ``success: false``.

    Attributes:
        message: The agent's reason, or a generic description.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
