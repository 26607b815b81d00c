"""
Exception hierarchy.

Configuration and input errors are raised before a conversation loop starts.
Generation errors end a running loop with an ``error`` event. Tool failures
are not exceptions at all: see ``freshsheet.agent.types.ToolError``.
"""


class FreshSheetError(Exception):
    """Base class for all application errors."""


class ConfigurationError(FreshSheetError):
    """The generation service is unreachable or not configured."""


class InputError(FreshSheetError):
    """The inbound request is missing or malformed."""


class NotFoundError(FreshSheetError):
    """A referenced user, restaurant or conversation does not exist."""


class ConversationBusyError(FreshSheetError):
    """Another loop is already running for this conversation."""


class GenerationError(FreshSheetError):
    """The generation call failed or returned output that cannot be used."""


class TranscriptError(FreshSheetError):
    """An append would break the transcript's ordering invariants."""


class ChannelClosedError(FreshSheetError):
    """An event was pushed after the stream was closed."""


class AuthenticationError(FreshSheetError):
    """The caller could not be identified."""
