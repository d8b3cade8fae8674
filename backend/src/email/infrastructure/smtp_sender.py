import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.mime.application import MIMEApplication
from typing import List, Optional, Dict, Any

from src.config import settings

from ..domain.exceptions import EmailSendingException, EmailConfigurationException
from ..domain.sender import AbstractEmailSender

logger = logging.getLogger(__name__)

class SmtpEmailSender(AbstractEmailSender):
    """Implémentation de l'envoi d'email via SMTP standard."""

    def __init__(self,
                 smtp_host: Optional[str] = None,
                 smtp_port: Optional[int] = None,
                 smtp_user: Optional[str] = None,
                 smtp_password: Optional[str] = None,
                 default_sender: Optional[str] = None,
                 use_tls: Optional[bool] = None):
        self.smtp_host = smtp_host or settings.SMTP_HOST
        self.smtp_port = smtp_port or settings.SMTP_PORT
        self.smtp_user = smtp_user or settings.SENDER_EMAIL
        self.smtp_password = smtp_password or settings.SENDER_PASSWORD
        self.default_sender = default_sender or settings.SENDER_EMAIL
        self.use_tls = settings.SMTP_USE_TLS if use_tls is None else use_tls
        if not self.is_configured:
            # L'application démarre quand même; chaque envoi échouera proprement
            logger.warning("[SmtpEmailSender] Configuration SMTP incomplète, les envois échoueront.")
        else:
            logger.info(f"[SmtpEmailSender] Initialisé pour {self.smtp_host}:{self.smtp_port}")

    @property
    def is_configured(self) -> bool:
        return all([self.smtp_host, self.smtp_port, self.smtp_user, self.smtp_password, self.default_sender])

    def _build_message(
        self,
        sender: str,
        recipient_email: str,
        subject: str,
        html_content: str,
        attachments: Optional[List[Dict[str, Any]]],
    ) -> MIMEMultipart:
        msg = MIMEMultipart('mixed')
        msg["From"] = sender
        msg["To"] = recipient_email
        msg["Subject"] = subject
        msg.attach(MIMEText(html_content, "html", "utf-8"))

        for attachment in attachments or []:
            filename = attachment.get('filename')
            content = attachment.get('content')
            subtype = attachment.get('subtype', 'octet-stream')
            if not (filename and content):
                logger.warning(f"[SmtpEmailSender] Pièce jointe ignorée (manque filename ou content): {filename}")
                continue
            part = MIMEApplication(content, _subtype=subtype)
            part.add_header("Content-Disposition", "attachment", filename=filename)
            msg.attach(part)
            logger.debug(f"[SmtpEmailSender] Pièce jointe '{filename}' ajoutée.")
        return msg

    def _deliver(self, sender: str, recipient_email: str, message: str) -> None:
        logger.debug(f"[SmtpEmailSender] Connexion à {self.smtp_host}:{self.smtp_port}")
        server = smtplib.SMTP(self.smtp_host, self.smtp_port)
        try:
            if self.use_tls:
                server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.sendmail(sender, [recipient_email], message)
        finally:
            server.quit()

    async def send_email(
        self,
        recipient_email: str,
        subject: str,
        html_content: str,
        sender_email: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None
    ) -> bool:
        if not self.is_configured:
            raise EmailConfigurationException()

        final_sender = sender_email or self.default_sender
        msg = self._build_message(final_sender, recipient_email, subject, html_content, attachments)

        try:
            logger.info(f"[SmtpEmailSender] Envoi de l'email à {recipient_email} (Sujet: {subject})")
            # smtplib est bloquant: exécution hors de la boucle d'événements
            await asyncio.to_thread(self._deliver, final_sender, recipient_email, msg.as_string())
            logger.info(f"[SmtpEmailSender] Email envoyé avec succès à {recipient_email}")
            return True
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"[SmtpEmailSender] Échec authentification SMTP: {e}", exc_info=True)
            raise EmailSendingException("Échec authentification SMTP.", original_exception=e)
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"[SmtpEmailSender] Destinataire refusé: {recipient_email}. Détails: {e.recipients}")
            return False
        except smtplib.SMTPSenderRefused as e:
            logger.error(f"[SmtpEmailSender] Expéditeur refusé: {final_sender}. Détails: {e.sender}", exc_info=True)
            raise EmailSendingException(f"Expéditeur refusé par le serveur: {final_sender}", original_exception=e)
        except smtplib.SMTPException as e:
            logger.error(f"[SmtpEmailSender] Erreur SMTP générale lors de l'envoi à {recipient_email}: {e}", exc_info=True)
            raise EmailSendingException(f"Erreur SMTP: {e}", original_exception=e)
        except Exception as e:
            logger.error(f"[SmtpEmailSender] Erreur inattendue lors de l'envoi à {recipient_email}: {e}", exc_info=True)
            raise EmailSendingException(f"Erreur inattendue: {e}", original_exception=e)
