"""Exceptions raised while relaying a realtime session."""

from __future__ import annotations


class ProtocolError(ValueError):
	"""The client sent a frame the relay cannot interpret."""


class TurnValidationError(ValueError):
	"""A recognized turn is missing a required field."""


class UpstreamUnavailable(RuntimeError):
	"""The upstream realtime channel cannot carry this turn."""


class ExternalCapabilityError(RuntimeError):
	"""A transcription or completion call failed."""
