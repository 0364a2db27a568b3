"""Zoho Books LedgerBackend adapter."""

import logging
from urllib.parse import urlencode

import httpx

from clientele.conf import clientele_settings
from clientele.exceptions import LedgerError
from clientele.models import LedgerToken
from clientele.protocols.ledger import (
    INVOICE_FILTER_STATUSES,
    ContactPayload,
    InvoicePage,
    LedgerContact,
    LedgerInvoice,
)

logger = logging.getLogger(__name__)

SCOPES = "ZohoBooks.contacts.ALL,ZohoBooks.invoices.READ"
INVOICES_PER_PAGE = 10


class ZohoBooksBackend:
    """
    Adapter that implements LedgerBackend against the Zoho Books v3 API.

    Configuration in settings.py:
        CLIENTELE = {
            "LEDGER_BACKEND": "clientele.adapters.zoho_books.ZohoBooksBackend",
            "ZOHO_CLIENT_ID": "...",
            "ZOHO_CLIENT_SECRET": "...",
            "ZOHO_ORG_ID": "...",
            "ZOHO_REDIRECT_URI": "https://example.com/clientele/admin/ledger/callback/",
        }

    Tokens live in LedgerToken. Every HTTP call is bounded by LEDGER_TIMEOUT.
    """

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self._transport = transport

    # ======================================================================
    # Configuration / OAuth
    # ======================================================================

    @staticmethod
    def is_configured() -> bool:
        return all(
            [
                clientele_settings.ZOHO_CLIENT_ID,
                clientele_settings.ZOHO_CLIENT_SECRET,
                clientele_settings.ZOHO_ORG_ID,
                clientele_settings.ZOHO_REDIRECT_URI,
            ]
        )

    def authorization_url(self) -> str:
        """URL the admin visits to grant offline access."""
        params = {
            "client_id": clientele_settings.ZOHO_CLIENT_ID,
            "redirect_uri": clientele_settings.ZOHO_REDIRECT_URI,
            "response_type": "code",
            "scope": SCOPES,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{clientele_settings.ZOHO_ACCOUNTS_URL}/auth?{urlencode(params)}"

    def exchange_code(self, code: str) -> LedgerToken:
        """Exchange an authorization code and store the resulting tokens."""
        data = self._token_request(
            {
                "client_id": clientele_settings.ZOHO_CLIENT_ID,
                "client_secret": clientele_settings.ZOHO_CLIENT_SECRET,
                "redirect_uri": clientele_settings.ZOHO_REDIRECT_URI,
                "grant_type": "authorization_code",
                "code": code,
            }
        )
        if not data.get("refresh_token"):
            raise LedgerError(
                "No refresh token received. Re-authorize with prompt=consent."
            )
        return LedgerToken.store(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_in=int(data.get("expires_in", 3600)),
        )

    def _refresh(self, token: LedgerToken) -> str:
        data = self._token_request(
            {
                "client_id": clientele_settings.ZOHO_CLIENT_ID,
                "client_secret": clientele_settings.ZOHO_CLIENT_SECRET,
                "grant_type": "refresh_token",
                "refresh_token": token.refresh_token,
            }
        )
        if not data.get("access_token"):
            raise LedgerError(f"Failed to refresh token: {data.get('error', 'no access_token')}")
        refreshed = LedgerToken.store(
            access_token=data["access_token"],
            refresh_token=token.refresh_token,
            expires_in=int(data.get("expires_in", 3600)),
        )
        logger.info("Zoho access token refreshed (expires %s)", refreshed.expires_at)
        return refreshed.access_token

    def _token_request(self, form: dict) -> dict:
        try:
            with self._client() as client:
                response = client.post(
                    f"{clientele_settings.ZOHO_ACCOUNTS_URL}/token", data=form
                )
        except httpx.HTTPError as exc:
            raise LedgerError(f"Zoho token request failed: {exc}") from exc
        if response.status_code >= 400:
            raise LedgerError(
                f"Zoho token request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    def _access_token(self) -> str:
        if not self.is_configured():
            raise LedgerError("Missing Zoho configuration")
        token = LedgerToken.current()
        if token is None:
            raise LedgerError("No Zoho tokens found. Admin needs to authorize the connection.")
        if token.is_expired():
            return self._refresh(token)
        return token.access_token

    def is_connected(self) -> bool:
        try:
            self._access_token()
            return True
        except LedgerError as exc:
            logger.info("Zoho not connected: %s", exc.message)
            return False

    # ======================================================================
    # HTTP
    # ======================================================================

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=clientele_settings.LEDGER_TIMEOUT,
            transport=self._transport,
        )

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict:
        query = {"organization_id": clientele_settings.ZOHO_ORG_ID}
        query.update(params or {})
        headers = {"Authorization": f"Zoho-oauthtoken {self._access_token()}"}

        try:
            with self._client() as client:
                response = client.request(
                    method,
                    f"{clientele_settings.ZOHO_API_URL}{endpoint}",
                    params=query,
                    json=json,
                    headers=headers,
                )
        except httpx.TimeoutException as exc:
            raise LedgerError(f"Zoho API timeout: {endpoint}") from exc
        except httpx.HTTPError as exc:
            raise LedgerError(f"Zoho API request failed: {exc}") from exc

        if response.status_code >= 400:
            raise LedgerError(
                f"Zoho API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        data = response.json()
        if data.get("code", 0) != 0:
            raise LedgerError(f"Zoho API error: {data.get('message', 'unknown error')}")
        return data

    # ======================================================================
    # Contacts
    # ======================================================================

    def search_contacts(self, query: str) -> list[LedgerContact]:
        data = self._request(
            "GET",
            "/contacts",
            params={"search_text": query, "contact_type": "customer", "per_page": "25"},
        )
        return [self._to_contact(c) for c in data.get("contacts", [])]

    def get_contact(self, contact_id: str) -> LedgerContact | None:
        try:
            data = self._request("GET", f"/contacts/{contact_id}")
        except LedgerError as exc:
            if exc.status_code == 404:
                return None
            raise
        contact = data.get("contact")
        return self._to_contact(contact) if contact else None

    def create_contact(self, payload: ContactPayload) -> LedgerContact:
        body = self._contact_body(payload)
        body["contact_type"] = "customer"
        data = self._request("POST", "/contacts", json=body)
        return self._to_contact(data["contact"])

    def update_contact(self, contact_id: str, payload: ContactPayload) -> None:
        self._request("PUT", f"/contacts/{contact_id}", json=self._contact_body(payload))

    @staticmethod
    def _contact_body(payload: ContactPayload) -> dict:
        body = {
            "contact_name": payload.contact_name,
            "contact_persons": [
                {
                    "email": payload.email,
                    "phone": payload.phone,
                    "is_primary_contact": True,
                }
            ],
        }
        if payload.billing_address:
            body["billing_address"] = {
                "address": payload.billing_address.address,
                "city": payload.billing_address.city,
                "state": payload.billing_address.state,
                "zip": payload.billing_address.zip,
            }
        return body

    @staticmethod
    def _to_contact(raw: dict) -> LedgerContact:
        return LedgerContact(
            contact_id=str(raw["contact_id"]),
            contact_name=raw.get("contact_name", ""),
            email=raw.get("email", "") or "",
            phone=raw.get("phone", "") or "",
            status=raw.get("status", "active"),
        )

    # ======================================================================
    # Invoices
    # ======================================================================

    def list_invoices(self, contact_id: str, filter: str = "recent", page: int = 1) -> InvoicePage:
        statuses = INVOICE_FILTER_STATUSES[filter]
        data = self._request(
            "GET",
            "/invoices",
            params={
                "customer_id": contact_id,
                "status": ",".join(statuses),
                "page": str(page),
                "per_page": str(INVOICES_PER_PAGE),
                "sort_column": "date",
                "sort_order": "D",
            },
        )
        page_context = data.get("page_context") or {}
        return InvoicePage(
            items=[self._to_invoice(i) for i in data.get("invoices", [])],
            has_more=bool(page_context.get("has_more_page", False)),
            total=int(page_context.get("total", 0) or 0),
        )

    @staticmethod
    def _to_invoice(raw: dict) -> LedgerInvoice:
        return LedgerInvoice(
            invoice_id=str(raw["invoice_id"]),
            invoice_number=raw.get("invoice_number", ""),
            status=raw.get("status", ""),
            date=raw.get("date", ""),
            due_date=raw.get("due_date", ""),
            total=float(raw.get("total", 0) or 0),
            balance=float(raw.get("balance", 0) or 0),
            payment_made=float(raw.get("payment_made", 0) or 0),
            currency_code=raw.get("currency_code", "PHP"),
            line_items=raw.get("line_items") or [],
        )
