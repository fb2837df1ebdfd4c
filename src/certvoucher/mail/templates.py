"""HTML bodies for the winner email and the operator alert.

Every interpolated value is passed through :func:`html.escape`; CRM contact
fields and class rows are user-supplied text.
"""

from __future__ import annotations

from datetime import datetime
from html import escape

from certvoucher.mail.resend import EmailMessage
from certvoucher.store.records import ClassSession


def _text(value: object) -> str:
    return escape("" if value is None else str(value))


def winner_email(
    *,
    sender: str,
    to: str,
    winner_name: str,
    certification_type: str,
    session: ClassSession,
    voucher_code: str,
) -> EmailMessage:
    """Build the congratulations email carrying the voucher code and class details."""
    html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #1e293b;">Congratulations {_text(winner_name)}!</h2>

  <p>You won a {_text(certification_type)} certification voucher at our seminar.</p>

  <div style="background: #f8fafc; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <h3 style="margin-top: 0; color: #475569;">Class Details</h3>
    <p><strong>Date:</strong> {_text(session.class_date.isoformat())}</p>
    <p><strong>Time:</strong> {_text(session.class_time)}</p>
    <p><strong>Location:</strong> {_text(session.location_format)}</p>
    <p><strong>Instructor:</strong> {_text(session.instructor_name)}</p>
  </div>

  <div style="background: #eff6ff; padding: 20px; border-radius: 8px; margin: 20px 0; border: 2px solid #3b82f6;">
    <h3 style="margin-top: 0; color: #1e40af;">Your Voucher Code</h3>
    <p style="font-size: 24px; font-weight: bold; color: #1e40af; font-family: monospace;">{_text(voucher_code)}</p>
  </div>

  <p>
    <a href="{_text(session.registration_link)}"
       style="display: inline-block; background: #3b82f6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; font-weight: bold;">
      Register for Class
    </a>
  </p>

  <p style="color: #64748b; font-size: 14px; margin-top: 30px;">
    Questions? Reply to this email and we'll help you out.
  </p>
</div>
"""
    return EmailMessage(
        sender=sender,
        to=to,
        subject=f"Your {certification_type} Certification Voucher",
        html=html,
    )


def alert_email(
    *, sender: str, to: str, subject: str, message: str, sent_at: datetime
) -> EmailMessage:
    """Build an operator alert."""
    html = f"""
<div style="font-family: Arial, sans-serif;">
  <h2 style="color: #dc2626;">System Alert</h2>
  <p>{_text(message)}</p>
  <p style="color: #64748b; font-size: 14px;">
    Time: {_text(sent_at.isoformat())}
  </p>
</div>
"""
    return EmailMessage(sender=sender, to=to, subject=f"[ALERT] {subject}", html=html)
