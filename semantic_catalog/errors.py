"""
Error base for the semantic layer.
Every failure raised by the catalog, the compiler or the executor derives from SemanticError.
"""


class SemanticError(Exception):
    """Base class for all semantic layer errors."""


class ValidationError(SemanticError):
    """
    A semantic model is structurally invalid.
    Raised eagerly when models are built or registered, before any query can run.
    """

    def __init__(self, message: str, model_name: str = None):
        super().__init__(message)
        self.model_name = model_name
