"""
LLM Errors
==========

Typed failures of the local model server. Each one carries enough detail
(service, endpoint, model id, status code) for a caller to decide whether a
retry makes sense, and renders a user-facing message for the terminal.
"""

from mavens.errors import MavensError

SERVICE_LABELS = {
    "lmstudio": "LM Studio",
    "ollama": "Ollama",
}


def service_label(service: str) -> str:
    return SERVICE_LABELS.get(service, service)


class LLMError(MavensError):
    """Base class for model server failures."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return False

    def details(self) -> dict:
        return {"kind": type(self).__name__, "service": self.service, "message": str(self)}


class ServiceUnavailableError(LLMError):
    """The model server could not be reached."""

    def __init__(self, service: str, endpoint: str, message: str = ""):
        self.endpoint = endpoint
        super().__init__(service, message or f"{service_label(service)} is not reachable at {endpoint}")

    @property
    def retryable(self) -> bool:
        return True

    def user_message(self) -> str:
        return (
            f"{service_label(self.service)} is not running or not reachable at {self.endpoint}. "
            f"Start the server and make sure a model is loaded."
        )

    def details(self) -> dict:
        return {**super().details(), "endpoint": self.endpoint}


class ModelNotFoundError(LLMError):
    """The requested model is not loaded on the server."""

    def __init__(self, service: str, model_id: str):
        self.model_id = model_id
        super().__init__(service, f"Model {model_id} not found in {service_label(service)}")

    def user_message(self) -> str:
        return f'The model "{self.model_id}" is no longer available. Please select a different model.'

    def details(self) -> dict:
        return {**super().details(), "model_id": self.model_id}


class LLMAPIError(LLMError):
    """The server answered with an error status or an unusable payload."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(service, message)

    @property
    def retryable(self) -> bool:
        # 4xx are client mistakes; server errors and unknown statuses may pass
        return self.status_code is None or self.status_code >= 500

    def user_message(self) -> str:
        label = service_label(self.service)
        if self.status_code == 429:
            return f"{label} is busy (rate limited). Please wait a moment and try again."
        if self.status_code is not None and self.status_code >= 500:
            return f"{label} returned a server error ({self.status_code}). Please try again."
        if self.status_code is not None:
            return f"{label} rejected the request ({self.status_code}): {self}"
        return f"{label} request failed: {self}"

    def details(self) -> dict:
        return {**super().details(), "status_code": self.status_code}
