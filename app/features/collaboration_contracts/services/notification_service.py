"""
Contract email composition and optional delegated dispatch.

This service only builds the message and the share link. When an external
sender endpoint is configured the message is POSTed to it; otherwise the
composed message is handed back for manual sending.
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx

from app.config import settings
from app.features.collaboration_contracts.domain import EmailDispatchError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = 15
MAX_RETRIES = 3
BACKOFF_FACTOR = 1
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass(slots=True)
class ContractEmail:
    recipient: str
    recipient_name: str
    subject: str
    body: str
    share_link: str


def compose_contract_email(
    *,
    recipient: str,
    recipient_name: str | None,
    company_name: str | None,
    collaboration_id: str,
    share_link: str,
    sender_name: str | None = None,
    sender_email: str | None = None,
    sent_on: datetime | None = None,
) -> ContractEmail:
    name = (recipient_name or "").strip() or "there"
    company = (company_name or "").strip() or settings.EMAIL_FROM_NAME
    sent_on = sent_on or datetime.now(UTC)

    lines = [
        f"Hi {name},",
        "",
        "We hope you're doing well!",
        "",
        f"Your collaboration has been successfully initiated with {company}.",
        "",
        f"Below is your secure contract signing link for Collaboration ID: {collaboration_id}.",
        "",
        "Please click the link below to open and sign your contract:",
        "",
        share_link,
        "",
        "Once the contract is signed, your onboarding for this collaboration will be completed.",
        "",
        "If you face any issue while accessing the link or signing the contract, "
        "feel free to contact us anytime.",
    ]
    if sender_name or sender_email:
        lines += ["", "Processed By:", ""]
        if sender_name:
            lines.append(f"• Name: {sender_name}")
        if sender_email:
            lines.append(f"• Email: {sender_email}")
        lines.append(f"• Date: {sent_on.strftime('%d/%m/%Y')}")
    lines += ["", "Best regards,", settings.EMAIL_FROM_NAME]

    return ContractEmail(
        recipient=recipient,
        recipient_name=name,
        subject=f"{company} - Contract Sign | {collaboration_id}",
        body="\n".join(lines),
        share_link=share_link,
    )


class EmailSender:
    """POSTs composed messages to the configured sender endpoint."""

    def __init__(self, url: str | None = None, token: str | None = None):
        self.url = url if url is not None else settings.EMAIL_SENDER_URL
        self.token = token if token is not None else settings.EMAIL_SENDER_TOKEN
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT))
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request_with_retry(self, **kwargs) -> httpx.Response:
        client = self._get_client()
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await client.post(self.url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                    logger.debug(
                        "Email sender retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Email sender request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError("Email sender retry loop exhausted")

    async def send(self, email: ContractEmail, collaboration_id: str | None = None) -> None:
        """
        Dispatch one message.

        Raises:
            EmailDispatchError: transport failure or non-2xx response
        """
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        payload = {
            "to": email.recipient,
            "subject": email.subject,
            "body": email.body,
            "influencerName": email.recipient_name,
        }

        try:
            response = await self._request_with_retry(json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.error("Email sender unreachable", collaboration_id=collaboration_id, error=str(e))
            raise EmailDispatchError(
                f"Email sender unreachable: {e}", collaboration_id=collaboration_id
            ) from e

        if not response.is_success:
            logger.error(
                "Email sender rejected message",
                collaboration_id=collaboration_id,
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise EmailDispatchError(
                f"Email sender failed (HTTP {response.status_code})",
                collaboration_id=collaboration_id,
                status_code=response.status_code,
            )

        logger.info("Contract email dispatched", collaboration_id=collaboration_id)


email_sender = EmailSender()
