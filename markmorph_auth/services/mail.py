"""
Sends one-time passcodes by e-mail.

If no SMTP credentials are configured the sender runs in log-only mode, which
writes the message (including the code) to the log instead of sending it.
That mode is meant for local development only.
"""

from typing import Optional
from email.message import EmailMessage
import logging
import smtplib

from ..domain import OtpContext, OtpPurpose
from ..exceptions import DeliveryFailed

logger = logging.getLogger(__name__)

SUBJECT = 'Your Verification Code - Mark Morph'

BODY = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: #333; text-align: center;">Verification Code</h2>
    <p style="color: #555; font-size: 16px;">Hello,</p>
    <p style="color: #555; font-size: 16px;">{intro}</p>
    <div style="background-color: #f5f5f5; padding: 15px; text-align: center; border-radius: 5px; margin: 20px 0;">
        <span style="font-size: 24px; font-weight: bold; letter-spacing: 5px; color: #007bff;">{code}</span>
    </div>
    <p style="color: #555; font-size: 14px;">This code will expire in {minutes} minutes.</p>
    <p style="color: #999; font-size: 12px; margin-top: 30px; text-align: center;">If you didn't request this code, please ignore this email.</p>
</div>
"""

INTROS = {
    OtpPurpose.SIGNUP: 'Your verification code for Mark Morph is:',
    OtpPurpose.LOGIN: 'Your sign-in code for Mark Morph is:',
    OtpPurpose.GUEST_WIFI: 'Your WiFi access code is:',
}


class MailSender(object):
    """Hands OTP messages to an SMTP server."""

    def __init__(self, host: Optional[str] = None, port: int = 587,
                 user: Optional[str] = None, password: Optional[str] = None,
                 from_email: str = 'noreply@markmorph.com',
                 code_ttl: int = 600) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._from = from_email
        self._minutes = max(code_ttl // 60, 1)
        if self.configured:
            logger.info('Email service configured with host: %s', host)
        else:
            logger.warning('Email credentials not found; using log-only mail')

    @classmethod
    def from_config(cls, config: dict) -> 'MailSender':
        return cls(config.get('EMAIL_HOST'), int(config.get('EMAIL_PORT', 587)),
                   config.get('EMAIL_USER'), config.get('EMAIL_PASS'),
                   config.get('EMAIL_FROM', 'noreply@markmorph.com'),
                   int(config.get('OTP_TTL', 600)))

    @property
    def configured(self) -> bool:
        return bool(self._host and self._user and self._password)

    def _new_connection(self) -> smtplib.SMTP:
        if self._port == 465:
            return smtplib.SMTP_SSL(host=self._host, port=self._port,
                                    timeout=10)
        conn = smtplib.SMTP(host=self._host, port=self._port, timeout=10)
        conn.starttls()
        return conn

    def build_message(self, email: str, code: str, purpose: OtpPurpose,
                      context: Optional[OtpContext] = None) -> EmailMessage:
        message = EmailMessage()
        message['Subject'] = SUBJECT
        message['From'] = self._from
        message['To'] = email
        message.set_content(f'Your verification code is {code}. '
                            f'It expires in {self._minutes} minutes.')
        message.add_alternative(BODY.format(intro=INTROS[purpose], code=code,
                                            minutes=self._minutes),
                                subtype='html')
        return message

    def send_otp(self, email: str, code: str, purpose: OtpPurpose,
                 context: Optional[OtpContext] = None) -> None:
        """
        Send an OTP message.

        Raises
        ------
        :class:`.DeliveryFailed`
            If the SMTP server could not be reached or refused the message.

        """
        if not self.configured:
            logger.info('[MOCK EMAIL] To: %s | Subject: %s | OTP: %s',
                        email, SUBJECT, code)
            return
        message = self.build_message(email, code, purpose, context)
        try:
            with self._new_connection() as conn:
                conn.login(self._user, self._password)
                conn.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error('Failed to send email to %s: %s', email, e)
            raise DeliveryFailed('Could not send verification email') from e
        logger.info('OTP email sent to %s', email)
