"""Notification delivery transports.

Message bodies live in provider-side templates (SendGrid dynamic templates,
Twilio content templates); transports only pass the template variables.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import sendgrid
from sendgrid.helpers.mail import Mail, Email, To
from twilio.rest import Client as TwilioClient
import structlog

from tablebook.config import Settings, settings as default_settings

logger = structlog.get_logger(__name__)


@dataclass
class DeliveryResult:
    """Outcome reported by a transport"""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class NotificationTransport:
    """Interface for a delivery channel"""

    channel: str = "none"

    def recipient_for(self, reservation) -> Optional[str]:
        """Address on the reservation this channel can deliver to"""
        raise NotImplementedError

    async def send(self, to: str, notification_type: str, data: Dict[str, Any]) -> DeliveryResult:
        raise NotImplementedError


class SendGridEmailTransport(NotificationTransport):
    """Email via SendGrid dynamic templates"""

    channel = "email"

    def __init__(self, api_key: str, from_email: str, from_name: str, template_ids: Dict[str, str]):
        self.from_email = from_email
        self.from_name = from_name
        self.template_ids = template_ids
        self.sg = sendgrid.SendGridAPIClient(api_key=api_key) if api_key else None

    def recipient_for(self, reservation) -> Optional[str]:
        return reservation.customer_email or None

    async def send(self, to: str, notification_type: str, data: Dict[str, Any]) -> DeliveryResult:
        template_id = self.template_ids.get(notification_type)
        if not self.sg or not template_id:
            return DeliveryResult(success=False, error="SendGrid not configured")
        return await asyncio.to_thread(self._send_sync, to, template_id, data)

    def _send_sync(self, to: str, template_id: str, data: Dict[str, Any]) -> DeliveryResult:
        message = Mail(from_email=Email(self.from_email, self.from_name), to_emails=To(to))
        message.template_id = template_id
        message.dynamic_template_data = data

        try:
            response = self.sg.send(message)
        except Exception as e:
            logger.error("SendGrid delivery failed", error=str(e))
            return DeliveryResult(success=False, error=str(e))

        if response.status_code not in (200, 202):
            return DeliveryResult(success=False, error=f"SendGrid returned {response.status_code}")

        message_id = response.headers.get("X-Message-Id") if response.headers else None
        return DeliveryResult(success=True, message_id=message_id)


class TwilioSMSTransport(NotificationTransport):
    """SMS via Twilio content templates"""

    channel = "sms"

    def __init__(self, account_sid: str, auth_token: str, from_number: str, content_sids: Dict[str, str]):
        self.from_number = from_number
        self.content_sids = content_sids
        self.client = TwilioClient(account_sid, auth_token) if account_sid and auth_token else None

    def recipient_for(self, reservation) -> Optional[str]:
        return reservation.customer_phone or None

    async def send(self, to: str, notification_type: str, data: Dict[str, Any]) -> DeliveryResult:
        content_sid = self.content_sids.get(notification_type)
        if not self.client or not content_sid:
            return DeliveryResult(success=False, error="Twilio not configured")
        return await asyncio.to_thread(self._send_sync, to, content_sid, data)

    def _send_sync(self, to: str, content_sid: str, data: Dict[str, Any]) -> DeliveryResult:
        try:
            message = self.client.messages.create(
                content_sid=content_sid,
                content_variables=json.dumps({k: str(v) for k, v in data.items()}),
                from_=self.from_number,
                to=to,
            )
        except Exception as e:
            logger.error("Twilio delivery failed", to=to[-4:], error=str(e))
            return DeliveryResult(success=False, error=str(e))

        return DeliveryResult(success=True, message_id=message.sid)


def build_transports(config: Settings = default_settings) -> List[NotificationTransport]:
    """Configured transports in preference order: email first, then SMS"""
    transports: List[NotificationTransport] = []

    if config.sendgrid_api_key:
        transports.append(
            SendGridEmailTransport(
                api_key=config.sendgrid_api_key,
                from_email=config.email_from_address,
                from_name=config.email_from_name,
                template_ids=config.sendgrid_template_ids,
            )
        )

    if config.twilio_account_sid and config.twilio_auth_token:
        transports.append(
            TwilioSMSTransport(
                account_sid=config.twilio_account_sid,
                auth_token=config.twilio_auth_token,
                from_number=config.twilio_phone_number,
                content_sids=config.twilio_content_sids,
            )
        )

    if not transports:
        logger.warning("No notification transport configured; deliveries will be recorded as failed")

    return transports
