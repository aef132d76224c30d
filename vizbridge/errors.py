from __future__ import annotations


class VisualizationError(Exception):
    """Request-shape or configuration problem that cannot be turned into content."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(VisualizationError):
    status_code = 400


class ConfigurationError(VisualizationError):
    status_code = 500
