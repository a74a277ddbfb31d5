"""
Error taxonomy for topic graph operations.

Each error carries a stable ``code`` so callers can map it to their own
representation (HTTP status, CLI exit code, ...).
"""


class TopicGraphError(Exception):
    """Base class for expected, caller-facing failures."""

    code = "topic_graph_error"


class UnknownStrategy(TopicGraphError):
    code = "unknown_strategy"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown relationship strategy: {name!r}")


class GraphNotFound(TopicGraphError):
    code = "graph_not_found"

    def __init__(self, graph_id: str):
        self.graph_id = graph_id
        super().__init__(f"Graph with ID {graph_id} not found")


class TopicNotFound(TopicGraphError):
    code = "topic_not_found"

    def __init__(self, topic_id: str):
        self.topic_id = topic_id
        super().__init__(f"Topic with ID {topic_id} not found")


class InvalidInput(TopicGraphError):
    code = "invalid_input"


class CandidateResolutionError(AssertionError):
    """
    An edge candidate referenced a label with no topic identity.

    Candidates are generated only from labels of the same batch, so this
    indicates a bug rather than bad input.
    """

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Edge candidate label {label!r} does not resolve to a topic")
