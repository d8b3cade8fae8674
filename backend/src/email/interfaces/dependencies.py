from typing import Annotated
from fastapi import Depends

from src.email.domain.sender import AbstractEmailSender
from src.email.infrastructure.smtp_sender import SmtpEmailSender
from src.email.application.services import EmailService

# --- Email Sender Dependency ---

def get_email_sender() -> AbstractEmailSender:
    """Fournit l'implémentation SMTP, configurée depuis `src.config.settings`."""
    return SmtpEmailSender()

EmailSenderDep = Annotated[AbstractEmailSender, Depends(get_email_sender)]

# --- Email Service Dependency ---

def get_email_service(email_sender: EmailSenderDep) -> EmailService:
    return EmailService(email_sender=email_sender)

EmailServiceDep = Annotated[EmailService, Depends(get_email_service)]
