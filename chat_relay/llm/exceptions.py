"""
Error taxonomy for the streaming relay.

Every error carries a human-readable message (``str(error)``) that is safe to
show to the end user, plus optional context for logging:
- Upstream status code and decoded error payload
- The model name the request was addressed to
"""

from __future__ import annotations


class RelayError(Exception):
    """Base relay error with upstream context."""

    category = "relay_error"

    def __init__(
        self,
        message: str,
        *,
        model: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class ValidationError(RelayError):
    """The inbound chat request is malformed. Raised before any upstream call."""

    category = "validation_error"

    def __init__(self, reason: str):
        super().__init__(f"Invalid messages array provided: {reason}")
        self.reason = reason


class UpstreamUnavailableError(RelayError):
    """The completion service could not be reached."""

    category = "upstream_unavailable"

    def __init__(self, base_url: str, reason: str, **kwargs):
        super().__init__(
            f"Could not connect to the language model server at {base_url} "
            f"({reason}). Please ensure it is running and reachable.",
            **kwargs,
        )
        self.base_url = base_url
        self.reason = reason


class UpstreamProtocolError(RelayError):
    """Non-success status or a response the relay cannot use."""

    category = "upstream_protocol"

    def __init__(self, detail: str, **kwargs):
        status_code = kwargs.get("status_code")
        prefix = (
            f"The language model server returned an error ({status_code})"
            if status_code is not None
            else "The language model server returned an error"
        )
        super().__init__(f"{prefix}: {detail}", **kwargs)
        self.detail = detail


class ModelNotFoundError(RelayError):
    """The upstream does not have the requested model."""

    category = "model_not_found"

    def __init__(self, model: str, **kwargs):
        super().__init__(
            f"The model '{model}' was not found on the language model server. "
            f"Pull it first, for example with 'ollama pull {model}'.",
            model=model,
            **kwargs,
        )


class ContextTooLongError(RelayError):
    """The conversation does not fit in the model context window."""

    category = "context_too_long"

    def __init__(self, **kwargs):
        super().__init__(
            "The conversation is too long for the model. "
            "Try starting a new topic.",
            **kwargs,
        )


class UpstreamInterruptedError(RelayError):
    """The upstream stream ended abnormally after it had started."""

    category = "upstream_interrupted"

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            f"The response from the language model was interrupted: {reason}",
            **kwargs,
        )
        self.reason = reason
