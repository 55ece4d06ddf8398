"""
Custom exception classes for the Operation Engine.

This module defines structured exception types for operation tree
construction, binding validation, artifact handling and manifest loading.
"""


class OperationEngineError(Exception):
    """Base exception for all Operation Engine errors."""
    pass


class OperationValidationError(OperationEngineError, ValueError):
    """Structural error detected while building or running an operation tree."""

    def __init__(self, operation_name: str, message: str):
        self.operation_name = operation_name
        self.message = message
        super().__init__(f"{operation_name}: {message}")


class BindingConflictError(OperationValidationError):
    """A binding name is already used as a single binding or as a group."""
    pass


class OperationReentrancyError(OperationValidationError):
    """The operation is already executing."""
    pass


class ArtifactError(OperationEngineError, ValueError):
    """Invalid artifact payload, type or name."""

    def __init__(self, artifact_name: str, message: str):
        self.artifact_name = artifact_name
        self.message = message
        super().__init__(f"Artifact {artifact_name!r}: {message}")


class ManifestLoadError(OperationEngineError):
    """Error loading manifest file."""

    def __init__(self, file_name: str, message: str):
        self.file_name = file_name
        self.message = message
        super().__init__(f"Error loading {file_name}: {message}")
