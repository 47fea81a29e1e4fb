# storefront/services/mail_client.py
import requests

from storefront.utils import settings
from storefront.utils.retry import http_retry
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

GRAPH_URL = "https://graph.microsoft.com/v1.0"


class GraphMailClient:
    """
    Wysylka maili przez Microsoft Graph (client credentials).
    Bez skonfigurowanych danych tylko loguje - tryb dev.
    """

    def __init__(
        self,
        tenant_id: str = settings.MS_GRAPH_TENANT_ID,
        client_id: str = settings.MS_GRAPH_CLIENT_ID,
        client_secret: str = settings.MS_GRAPH_CLIENT_SECRET,
        sender: str = settings.MAIL_SENDER,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
    ):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.sender = sender
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)

    @http_retry()
    def _get_token(self) -> str:
        resp = requests.post(
            f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/v2.0/token",
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": "https://graph.microsoft.com/.default",
                "grant_type": "client_credentials",
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()["access_token"]

    @http_retry()
    def _post_mail(self, token: str, message: dict) -> None:
        resp = requests.post(
            f"{GRAPH_URL}/users/{self.sender}/sendMail",
            json={"message": message, "saveToSentItems": False},
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        resp.raise_for_status()

    def send(self, to: str, subject: str, html: str) -> bool:
        if not self.configured:
            logger.info(f"[MAIL] Graph not configured, would send '{subject}' to {to}")
            return False

        message = {
            "subject": subject,
            "body": {"contentType": "HTML", "content": html},
            "toRecipients": [{"emailAddress": {"address": to}}],
        }
        self._post_mail(self._get_token(), message)
        logger.info(f"[MAIL] Sent '{subject}' to {to}")
        return True
