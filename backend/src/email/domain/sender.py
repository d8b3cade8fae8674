from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any

class AbstractEmailSender(ABC):
    """Interface abstraite pour l'envoi d'e-mails."""

    @abstractmethod
    async def send_email(
        self,
        recipient_email: str,
        subject: str,
        html_content: str,
        sender_email: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None # [{'filename': 'F-ABC-001.pdf', 'content': b'...', 'subtype': 'pdf'}]
    ) -> bool:
        """Envoie un email HTML.

        Returns:
            True si le serveur a accepté le message, False si le destinataire est refusé.

        Raises:
            EmailSendingException: configuration absente ou erreur SMTP.
        """
        raise NotImplementedError
