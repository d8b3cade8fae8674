"""Exceptions spécifiques au domaine Email."""

from typing import Optional

from src.core.exceptions import DomainException

class EmailDomainException(Exception):
    """Classe de base pour les exceptions du domaine Email."""
    pass

class EmailSendingException(EmailDomainException):
    """Levée lorsqu'une erreur survient pendant la tentative d'envoi d'un email."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        full_message = f"Erreur lors de l'envoi de l'email: {message}"
        if original_exception:
            full_message += f" (Erreur originale: {original_exception})"
        super().__init__(full_message)
        self.original_exception = original_exception

class EmailConfigurationException(EmailSendingException):
    """Levée si la configuration SMTP est incomplète au moment de l'envoi."""
    def __init__(self, message: str = "Configuration SMTP (host, port, user, password, sender) incomplète."):
        super().__init__(message)

class EmailDeliveryFailedException(DomainException):
    """Levée par les services métier quand un envoi explicitement demandé n'a pas abouti."""
    def __init__(self, recipient_email: str):
        super().__init__(f"L'email n'a pas pu être envoyé à {recipient_email}.")
        self.recipient_email = recipient_email
