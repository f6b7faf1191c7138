"""Failure taxonomy for the dispatch pipeline.

Adapters raise these; the router and scheduling dispatcher catch them at
the dispatch boundary and turn them into a chat reply.
"""


class DispatchError(Exception):
    """Base class for failures surfaced while handling one inbound message."""


class UpstreamUnavailable(DispatchError):
    """A completion, calendar, email or transcription call failed."""


class InvalidSchedule(DispatchError):
    """Meeting times are missing, unparseable, in the past, or out of order."""


class MissingCredential(DispatchError):
    """No OAuth token on file for the session and provider."""

    def __init__(self, session_id: str, provider: str) -> None:
        super().__init__(f"No {provider} credential for session {session_id}")
        self.session_id = session_id
        self.provider = provider
