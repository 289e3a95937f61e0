"""
Erreurs métier typées.

Les services lèvent ces exceptions ; main.py les traduit en réponse JSON
`{"message": ..., "error": ...}` avec le code HTTP associé.
"""


class AppError(Exception):
    status_code = 500
    error = "unexpected_error"

    def __init__(self, message: str, error: str = None):
        self.message = message
        if error is not None:
            self.error = error
        super().__init__(message)


class ValidationError(AppError):
    """Entrée mal formée ou hors bornes."""
    status_code = 400
    error = "validation_error"


class AttemptLimitError(ValidationError):
    """Nombre maximal de tentatives atteint pour un exercice."""
    error = "attempt_limit_reached"


class ConflictError(AppError):
    """Doublon (email, nom de matière, note déjà saisie...)."""
    status_code = 400
    error = "conflict"


class AuthenticationError(AppError):
    status_code = 401
    error = "authentication_error"


class AuthorizationError(AppError):
    status_code = 403
    error = "authorization_error"


class NotFoundError(AppError):
    status_code = 404
    error = "not_found"


class UpstreamTimeoutError(AppError):
    """Le fournisseur IA n'a pas répondu dans le délai imparti."""
    status_code = 408
    error = "upstream_timeout"
