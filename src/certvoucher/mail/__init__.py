"""Email subpackage: the hosted email API client and message templates."""

from certvoucher.mail.resend import EmailMessage, EmailSendError, ResendMailer

__all__: list[str] = ["EmailMessage", "EmailSendError", "ResendMailer"]
