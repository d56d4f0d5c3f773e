"""
Exception hierarchy
Every failure surfaced to the operator derives from ChannelTranscriberError
"""


class ChannelTranscriberError(Exception):
    """Base exception for all operator-visible failures."""


class ConfigurationError(ChannelTranscriberError):
    """Missing credential or unsupported channel URL; raised before any network call."""


class PipelineStateError(ChannelTranscriberError):
    """Invalid stage transition, or an action refused while work is in flight."""


class UpstreamError(ChannelTranscriberError):
    """Non-success or malformed response from a third-party service."""


class AudioDownloadError(UpstreamError):
    """The operator-supplied audio URL could not be downloaded."""


class QuotaError(UpstreamError):
    """The transcription service rejected the call for rate-limit or quota reasons."""


class CredentialError(UpstreamError):
    """The transcription service rejected the API key."""


class EmptyResultError(UpstreamError):
    """A scan succeeded technically but produced no usable video records."""
