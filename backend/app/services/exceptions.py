"""Service-level exceptions, translated to HTTP errors by the API layer."""


class RecommendationError(Exception):
    """Base class for recommendation service errors."""


class ProblemNotFoundError(RecommendationError):
    """Raised when the target problem of a similarity request does not exist."""

    def __init__(self, problem_id):
        self.problem_id = problem_id
        super().__init__(f"Problem {problem_id} not found")


class PreferencesValidationError(RecommendationError):
    """Raised when a preference update carries no usable or invalid fields."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))
