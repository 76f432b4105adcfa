"""
Taxonomie d'erreurs du moteur de caisse.
- ValidationError: entrée refusée (montant, quantité, champ client manquant). Bloquant.
- NotFoundError: recherche sans résultat (véhicule, client, état). Souvent non fatale.
- TransientStoreError: échec réseau/BD à l'écriture. Rejouable, l'état mémoire reste intact.
- InvalidTransitionError: garde du cycle de vie violée. Refus net, état inchangé.
Chaque erreur porte un `code` machine et reste lisible pour l'opérateur (str(e)).
"""


class PosError(Exception):
    status_code = 400
    retryable = False

    def __init__(self, message: str, code: str = "error"):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(PosError):
    status_code = 400

    def __init__(self, message: str, code: str = "invalid"):
        super().__init__(message, code)


class NotFoundError(PosError):
    status_code = 404

    def __init__(self, message: str, code: str = "not_found"):
        super().__init__(message, code)


class TransientStoreError(PosError):
    status_code = 503
    retryable = True

    def __init__(self, message: str, code: str = "store_unavailable"):
        super().__init__(message, code)


class InvalidTransitionError(PosError):
    status_code = 409

    def __init__(self, message: str, code: str = "invalid_transition"):
        super().__init__(message, code)
