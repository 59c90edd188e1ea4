# Overview: Notification collaborator used for supplier payment SMS.

from __future__ import annotations

from flask import current_app


class SmsGateway:
    """
    Interface for the SMS dispatch collaborator.

    send() returns True when the provider accepted the message. It may also
    raise; callers treat both a False return and an exception as a failed send.
    """

    def send(self, recipient: str, message: str, message_type: str) -> bool:
        raise NotImplementedError


class LoggingSmsGateway(SmsGateway):
    """Default gateway: writes the message to the application log."""

    def send(self, recipient: str, message: str, message_type: str) -> bool:
        current_app.logger.info("SMS [%s] to %s: %s", message_type, recipient, message)
        return True


def get_gateway() -> SmsGateway:
    gateway = current_app.config.get("SMS_GATEWAY")
    return gateway if gateway is not None else LoggingSmsGateway()


def notify(recipient: str, message: str, message_type: str) -> bool:
    """
    Send one message. Returns False when SMS is disabled or the gateway
    declined it; exceptions from the gateway propagate.
    """
    if not current_app.config.get("SMS_ENABLED", True):
        current_app.logger.info("SMS disabled; not sending %s to %s", message_type, recipient)
        return False
    return bool(get_gateway().send(recipient, message, message_type))


def payment_message(*, supplier_name: str, batch_number: str, amount_ugx: int,
                    advance_recovered_ugx: int, method: str) -> str:
    net = amount_ugx - advance_recovered_ugx
    text = f"Dear {supplier_name}, payment of UGX {amount_ugx:,} for coffee batch {batch_number} "
    if method == "Cash":
        text += "has been made in cash."
    else:
        text += "has been submitted for bank transfer."
    if advance_recovered_ugx:
        text += f" Advance recovered: UGX {advance_recovered_ugx:,}. Net: UGX {net:,}."
    return text
