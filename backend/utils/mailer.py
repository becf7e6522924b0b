# backend/utils/mailer.py
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

APP_NAME = "Acessae"


class Mailer(ABC):
    """Outgoing mail interface. Delivery itself is handled outside this service."""

    @abstractmethod
    def send_reset_password_email(self, to: str, *, user_name: str, reset_url: str) -> None:
        ...


class LoggingMailer(Mailer):
    # Records the message instead of sending it; used until a real transport is wired in
    def __init__(self):
        self.sent = []

    def send_reset_password_email(self, to: str, *, user_name: str, reset_url: str) -> None:
        subject = f"{APP_NAME} - password reset"
        self.sent.append({"to": to, "subject": subject, "user_name": user_name, "reset_url": reset_url})
        logger.info("Password reset email for %s queued (user=%s)", to, user_name)


_mailer = LoggingMailer()

def get_mailer() -> Mailer:
    return _mailer
