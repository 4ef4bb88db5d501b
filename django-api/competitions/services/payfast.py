"""PayFast integration: notification parsing, signatures, host checks and server validation."""

import hashlib
import hmac
import logging
import socket
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Self
from urllib.parse import parse_qsl, quote_plus

import requests
from django.conf import settings
from django.core.cache import cache

from competitions.domain import Money, PaymentState
from competitions.domain.errors import InvalidInputError

logger = logging.getLogger(__name__)

VALID_HOSTS_CACHE_KEY = "payfast:valid_ips"
REQUIRED_FIELDS = ("m_payment_id", "payment_status", "signature")

_PROVIDER_STATES = {
    "COMPLETE": PaymentState.COMPLETED,
    "FAILED": PaymentState.FAILED,
    "CANCELLED": PaymentState.CANCELLED,
}


def _amount(value: str | None) -> Money:
    try:
        # PayFast reports amount_fee as a negative number.
        return Money(abs(Decimal(value or "0")))
    except InvalidOperation as exc:
        raise InvalidInputError(f"Invalid amount: {value}") from exc


@dataclass(frozen=True)
class PayFastConfig:
    merchant_id: str
    merchant_key: str
    passphrase: str
    sandbox: bool
    valid_hosts: tuple[str, ...]
    trusted_ips: tuple[str, ...] = ()
    host_cache_seconds: int = 3600
    server_validation: bool = False
    return_url: str = ""
    cancel_url: str = ""
    notify_url: str = ""

    @classmethod
    def from_settings(cls) -> Self:
        return cls(
            merchant_id=settings.PAYFAST_MERCHANT_ID,
            merchant_key=settings.PAYFAST_MERCHANT_KEY,
            passphrase=settings.PAYFAST_PASSPHRASE,
            sandbox=settings.PAYFAST_SANDBOX,
            valid_hosts=tuple(settings.PAYFAST_VALID_HOSTS),
            trusted_ips=tuple(settings.PAYFAST_TRUSTED_IPS),
            host_cache_seconds=settings.PAYFAST_HOST_CACHE_SECONDS,
            server_validation=settings.PAYFAST_SERVER_VALIDATION,
            return_url=settings.PAYFAST_RETURN_URL,
            cancel_url=settings.PAYFAST_CANCEL_URL,
            notify_url=settings.PAYFAST_NOTIFY_URL,
        )

    @property
    def host(self) -> str:
        return "sandbox.payfast.co.za" if self.sandbox else "www.payfast.co.za"

    @property
    def process_url(self) -> str:
        return f"https://{self.host}/eng/process"

    @property
    def validate_url(self) -> str:
        return f"https://{self.host}/eng/query/validate"


@dataclass(frozen=True)
class PayFastNotification:
    """An ITN (instant transaction notification) as posted by PayFast."""

    fields: dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, raw_body: str) -> Self:
        return cls(fields=dict(parse_qsl(raw_body, keep_blank_values=True)))

    @property
    def payment_id(self) -> str:
        return self.fields.get("m_payment_id", "")

    @property
    def provider_status(self) -> str:
        return self.fields.get("payment_status", "")

    @property
    def provider_payment_id(self) -> str:
        return self.fields.get("pf_payment_id", "")

    @property
    def signature(self) -> str:
        return self.fields.get("signature", "")

    @property
    def state(self) -> PaymentState:
        return _PROVIDER_STATES.get(self.provider_status, PaymentState.PROCESSING)

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if not self.fields.get(name)]

    def amounts(self) -> tuple[Money, Money, Money]:
        """Gross, fee and net amounts.

        Raises:
            InvalidInputError: If an amount is not a number.
        """
        return (
            _amount(self.fields.get("amount_gross")),
            _amount(self.fields.get("amount_fee")),
            _amount(self.fields.get("amount_net")),
        )


class PayFastGateway:
    def __init__(self, config: PayFastConfig) -> None:
        self._config = config

    @property
    def config(self) -> PayFastConfig:
        return self._config

    def signature_for(self, param_string: str) -> str:
        """MD5 over the parameter string, with the passphrase appended when configured."""
        if self._config.passphrase:
            param_string = f"{param_string}&passphrase={quote_plus(self._config.passphrase.strip())}"
        return hashlib.md5(param_string.encode("utf-8")).hexdigest()

    def sign_fields(self, fields: Iterable[tuple[str, str]]) -> str:
        """Signature for outgoing checkout fields, in the order given. Blank values are skipped."""
        param_string = "&".join(
            f"{name}={quote_plus(str(value).strip())}" for name, value in fields if str(value).strip() != ""
        )
        return self.signature_for(param_string)

    @staticmethod
    def split_signature(raw_body: str) -> tuple[str, str]:
        """Return the raw body without its signature pair, and the received signature."""
        kept, received = [], ""
        for pair in raw_body.split("&"):
            if pair.lower().startswith("signature="):
                received = pair.partition("=")[2]
            else:
                kept.append(pair)
        return "&".join(kept), received

    def verify_signature(self, raw_body: str) -> bool:
        """Strict check of the signature against the body exactly as received."""
        param_string, received = self.split_signature(raw_body)
        if not received:
            return False
        return hmac.compare_digest(self.signature_for(param_string).encode(), received.encode())

    def _resolve_valid_ips(self) -> set[str]:
        ips = cache.get(VALID_HOSTS_CACHE_KEY)
        if ips is not None:
            return ips
        ips = set()
        for host in self._config.valid_hosts:
            try:
                ips.update(socket.gethostbyname_ex(host)[2])
            except OSError:
                logger.warning("Could not resolve PayFast host %s", host)
        if ips:
            cache.set(VALID_HOSTS_CACHE_KEY, ips, self._config.host_cache_seconds)
        return ips

    def is_trusted_host(self, client_ip: str) -> bool:
        if client_ip in self._config.trusted_ips:
            return True
        return client_ip in self._resolve_valid_ips()

    def confirm_with_provider(self, raw_body: str) -> bool:
        """Ask PayFast to confirm the notification. Disabled unless PAYFAST_SERVER_VALIDATION is set."""
        if not self._config.server_validation:
            return True
        param_string, _ = self.split_signature(raw_body)
        try:
            response = requests.post(
                self._config.validate_url,
                data=param_string,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=10,
            )
        except requests.RequestException:
            logger.warning("PayFast server validation request failed", exc_info=True)
            return False
        return response.ok and response.text.strip() == "VALID"
