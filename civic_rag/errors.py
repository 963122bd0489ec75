"""Error taxonomy for the query pipeline."""


class CivicRAGError(Exception):
    """Base class for pipeline errors."""


class CollaboratorUnavailable(CivicRAGError, RuntimeError):
    """An external collaborator (vector store or LLM) failed or timed out."""

    def __init__(self, collaborator: str, message: str):
        self.collaborator = collaborator
        super().__init__(f"{collaborator} unavailable: {message}")


class MalformedStructuredOutput(CivicRAGError, ValueError):
    """LLM JSON output could not be parsed or omitted required fields."""

    def __init__(self, stage: str, raw_output: str, reason: str):
        self.stage = stage
        self.raw_output = raw_output
        super().__init__(f"{stage} returned malformed output: {reason}")


class AmbiguousQuery(CivicRAGError):
    """The query has no resolvable entity or topic."""

    def __init__(self, query: str, clarification: str):
        self.query = query
        self.clarification = clarification
        super().__init__(clarification)


class StaleContext(CivicRAGError):
    """The cached entity is too old to be used for follow-ups."""

    def __init__(self, session_id: str, clarification: str):
        self.session_id = session_id
        self.clarification = clarification
        super().__init__(clarification)
