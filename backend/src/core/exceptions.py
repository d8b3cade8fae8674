"""Exceptions de base partagées par les différents domaines."""

class DomainException(Exception):
    """Classe de base pour toutes les exceptions métier."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class NotFoundException(DomainException):
    """Levée lorsqu'une entité référencée n'existe pas."""
    pass

class InvalidStateException(DomainException):
    """Levée lorsque l'état courant d'une entité interdit l'opération demandée."""
    pass

class ConflictException(DomainException):
    """Levée lorsqu'une opération entre en conflit avec des données existantes."""
    pass
