from __future__ import annotations


class ImportJobError(Exception):
    pass


class JobNotFoundError(ImportJobError):
    def __init__(self, job_id: str):
        super().__init__(f"Import job not found: {job_id}")
        self.job_id = job_id


class InvalidJobTransitionError(ImportJobError):
    def __init__(self, current: str, target: str, reason: str | None = None):
        message = f"Invalid job transition {current} -> {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class JobRepositoryError(ImportJobError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Job repository error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class HouseholdNotFoundError(ImportJobError):
    def __init__(self, user_id: str):
        super().__init__("Could not find user household")
        self.user_id = user_id


class InvalidExtractionError(ImportJobError):
    pass


class MaterializationError(ImportJobError):
    def __init__(self, stage: str, reason: str, recipe_id: str | None = None):
        super().__init__(f"Failed to create {stage}: {reason}")
        self.stage = stage
        self.reason = reason
        self.recipe_id = recipe_id


class WorkerConfigurationError(ImportJobError):
    def __init__(self, errors: list[str]):
        super().__init__(f"Worker configuration errors: {', '.join(errors)}")
        self.errors = errors
