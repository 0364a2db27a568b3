"""
Clientele JSON API.

Customer endpoints act on the customer resolved from the logged-in user;
admin endpoints require a staff user; cron endpoints require
``Authorization: Bearer <CRON_SECRET>``.

Errors are returned as {"error": {"code", "message", ...}} with the status
taken from the error category. Unexpected exceptions are logged and
answered with a generic 500.
"""

import json
import logging

from django.contrib.auth import logout
from django.http import HttpResponseRedirect, JsonResponse
from django.utils.cache import add_never_cache_headers
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from clientele.auth import AuthContext
from clientele.conf import clientele_settings
from clientele.exceptions import ClienteleError, LedgerError
from clientele.forms import LedgerLinkForm, ProfileForm, RegistrationForm, form_errors
from clientele.gates import Gates
from clientele.services import address as address_service
from clientele.services import courier as courier_service
from clientele.services import customer as customer_service
from clientele.services import delivery as delivery_service
from clientele.services import sync as sync_service

logger = logging.getLogger(__name__)

STATUS_BY_CATEGORY = {
    "validation": 400,
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "external": 502,
    "internal": 500,
}

GENERIC_ERROR = "Something went wrong. Please try again."

ADDRESS_INPUT = (*address_service.ADDRESS_FIELDS, "is_default")


# ======================================================================
# Serialization
# ======================================================================


def serialize_address(addr) -> dict:
    return {
        "id": addr.pk,
        "label": addr.label,
        "recipient_first_name": addr.recipient_first_name,
        "recipient_last_name": addr.recipient_last_name,
        "street_address": addr.street_address,
        "barangay": addr.barangay,
        "city": addr.city,
        "province": addr.province,
        "region": addr.region,
        "postal_code": addr.postal_code,
        "is_default": addr.is_default,
        "formatted_address": addr.formatted_address,
    }


def serialize_customer(cust, with_addresses: bool = True) -> dict:
    data = {
        "code": cust.code,
        "uuid": str(cust.uuid),
        "first_name": cust.first_name,
        "last_name": cust.last_name,
        "email": cust.email,
        "phone": cust.phone,
        "contact_preference": cust.contact_preference,
        "delivery_method": cust.delivery_method,
        "courier_code": cust.courier.code if cust.courier else None,
        "is_returning_customer": cust.is_returning_customer,
        "profile_street_address": cust.profile_street_address,
        "profile_barangay": cust.profile_barangay,
        "profile_city": cust.profile_city,
        "profile_province": cust.profile_province,
        "profile_region": cust.profile_region,
        "profile_postal_code": cust.profile_postal_code,
        "delivery": serialize_delivery(cust),
        "sync": serialize_sync(cust),
    }
    if with_addresses:
        data["addresses"] = [serialize_address(a) for a in cust.addresses.all()]
    return data


def serialize_delivery(cust) -> dict:
    return {
        "status": cust.delivery_status,
        "confirmed_at": (
            cust.delivery_confirmed_at.isoformat() if cust.delivery_confirmed_at else None
        ),
        "delivered_at": cust.delivered_at.isoformat() if cust.delivered_at else None,
    }


def serialize_delivery_log(log) -> dict:
    return {
        "id": log.pk,
        "action": log.action,
        "label": log.get_action_display(),
        "notes": log.notes,
        "created_at": log.created_at.isoformat(),
    }


def serialize_courier(courier) -> dict:
    return {"code": courier.code, "name": courier.name, "is_active": courier.is_active}


def serialize_contact(contact) -> dict:
    return {
        "contact_id": contact.contact_id,
        "contact_name": contact.contact_name,
        "email": contact.email,
        "phone": contact.phone,
        "status": contact.status,
    }


def serialize_sync(cust) -> dict:
    return {
        "status": cust.sync_status,
        "error": cust.sync_error,
        "attempts": cust.sync_attempts,
        "last_attempt_at": (
            cust.sync_last_attempt_at.isoformat() if cust.sync_last_attempt_at else None
        ),
        "contact_id": cust.ledger_contact_id,
    }


def serialize_invoice(inv) -> dict:
    return {
        "invoice_id": inv.invoice_id,
        "invoice_number": inv.invoice_number,
        "status": inv.status,
        "date": inv.date,
        "due_date": inv.due_date,
        "total": inv.total,
        "balance": inv.balance,
        "payment_made": inv.payment_made,
        "currency_code": inv.currency_code,
        "line_items": inv.line_items,
    }


def address_input(data: dict) -> dict:
    """Address fields of a request body; other keys are dropped."""
    return {key: value for key, value in data.items() if key in ADDRESS_INPUT}


def error_response(exc: ClienteleError) -> JsonResponse:
    status = STATUS_BY_CATEGORY.get(exc.category, 500)
    if status >= 500:
        body = {"code": exc.code, "message": GENERIC_ERROR if status == 500 else exc.message}
    else:
        body = {"code": exc.code, "message": exc.message, **exc.data}
    return JsonResponse({"error": body}, status=status)


# ======================================================================
# Base
# ======================================================================


@method_decorator(csrf_exempt, name="dispatch")
class ApiView(View):
    """JSON view base: parses bodies, builds AuthContext, maps errors."""

    def dispatch(self, request, *args, **kwargs):
        self.auth = AuthContext.from_request(request)
        try:
            return super().dispatch(request, *args, **kwargs)
        except ClienteleError as exc:
            if exc.category == "internal":
                logger.error("%s %s failed: %s", request.method, request.path, exc)
            return error_response(exc)
        except LedgerError as exc:
            logger.warning("%s %s ledger error: %s", request.method, request.path, exc.message)
            return error_response(ClienteleError("LEDGER_UNAVAILABLE"))
        except Exception:
            logger.exception("%s %s failed", request.method, request.path)
            return JsonResponse(
                {"error": {"code": "INTERNAL_ERROR", "message": GENERIC_ERROR}}, status=500
            )

    def json_body(self) -> dict:
        if not self.request.body:
            return {}
        try:
            data = json.loads(self.request.body)
        except (json.JSONDecodeError, ValueError):
            raise ClienteleError("VALIDATION_FAILED", message="Invalid JSON")
        if not isinstance(data, dict):
            raise ClienteleError("VALIDATION_FAILED", message="Expected a JSON object")
        return data


# ======================================================================
# Customer
# ======================================================================


class AddressListView(ApiView):
    def get(self, request):
        cust = self.auth.require_customer()
        return JsonResponse(
            {"addresses": [serialize_address(a) for a in address_service.addresses(cust.code)]}
        )

    def post(self, request):
        cust = self.auth.require_customer()
        addr = address_service.add_address(cust.code, **address_input(self.json_body()))
        return JsonResponse({"address": serialize_address(addr)}, status=201)


class AddressDetailView(ApiView):
    def put(self, request, address_id):
        cust = self.auth.require_customer()
        addr = address_service.update_address(
            cust.code, address_id, **address_input(self.json_body())
        )
        return JsonResponse({"address": serialize_address(addr)})

    def delete(self, request, address_id):
        cust = self.auth.require_customer()
        address_service.delete_address(cust.code, address_id)
        return JsonResponse({"success": True})


class AddressSetDefaultView(ApiView):
    def post(self, request, address_id):
        cust = self.auth.require_customer()
        addr = address_service.set_default_address(cust.code, address_id)
        return JsonResponse({"address": serialize_address(addr)})


class ProfileView(ApiView):
    def get(self, request):
        cust = self.auth.require_customer()
        return JsonResponse({"customer": serialize_customer(cust)})

    def patch(self, request):
        cust = self.auth.require_customer()
        form = ProfileForm(self.json_body())
        if not form.is_valid():
            raise ClienteleError("VALIDATION_FAILED", errors=form_errors(form))

        fields = form.changed_values()
        courier_code = fields.pop("courier_code", None)
        updated = customer_service.update_profile(cust.code, courier_code=courier_code, **fields)
        return JsonResponse({"customer": serialize_customer(updated)})


class InvoiceListView(ApiView):
    def get(self, request):
        cust = self.auth.require_customer()
        try:
            page = int(request.GET.get("page", 1))
        except ValueError:
            raise ClienteleError("VALIDATION_FAILED", errors={"page": ["Must be a number"]})
        result = sync_service.customer_invoices(
            cust.code, filter=request.GET.get("filter", "recent"), page=page
        )
        return JsonResponse(
            {
                "invoices": [serialize_invoice(i) for i in result.items],
                "has_more": result.has_more,
                "total": result.total,
                "page": page,
            }
        )


class RegisterView(ApiView):
    def post(self, request):
        data = self.json_body()
        addresses = data.pop("addresses", []) or []
        if not isinstance(addresses, list):
            raise ClienteleError(
                "VALIDATION_FAILED", errors={"addresses": ["Expected a list of addresses"]}
            )

        form = RegistrationForm(data)
        if not form.is_valid():
            raise ClienteleError("VALIDATION_FAILED", errors=form_errors(form))

        fields = dict(form.cleaned_data)
        fields["courier_code"] = fields.get("courier_code") or None
        if self.auth.is_authenticated and self.auth.customer is None:
            fields["user"] = self.auth.user

        cust = customer_service.register(addresses=addresses, **fields)
        return JsonResponse({"customer": serialize_customer(cust)}, status=201)


class AccountView(ApiView):
    """Self-service account deletion (customer profile, addresses and login)."""

    def delete(self, request):
        self.auth.require_customer()
        user = self.auth.user
        code = customer_service.delete_account(user)
        logout(request)
        logger.info("Customer %s deleted their account", code)
        return JsonResponse({"success": True})


class DeliveryConfirmView(ApiView):
    """Public target of the confirmation link in customer emails."""

    def get(self, request, token):
        cust = delivery_service.confirm_delivery(token)
        return JsonResponse(
            {"success": True, "customer_code": cust.code, "delivery": serialize_delivery(cust)}
        )


# ======================================================================
# Couriers
# ======================================================================


class CourierListView(ApiView):
    def get(self, request):
        include_inactive = request.GET.get("all") == "true"
        if include_inactive:
            self.auth.require_admin()
        couriers = courier_service.list_couriers(only_active=not include_inactive)
        return JsonResponse({"couriers": [serialize_courier(c) for c in couriers]})

    def post(self, request):
        self.auth.require_admin()
        data = self.json_body()
        courier = courier_service.create(
            code=data.get("code", ""),
            name=data.get("name", ""),
            is_active=data.get("is_active", True),
        )
        return JsonResponse({"courier": serialize_courier(courier)}, status=201)


class CourierDetailView(ApiView):
    def get(self, request, code):
        courier = courier_service.get_or_raise(code)
        if not courier.is_active:
            self.auth.require_admin()
        return JsonResponse({"courier": serialize_courier(courier)})

    def patch(self, request, code):
        self.auth.require_admin()
        data = self.json_body()
        is_active = data.get("is_active")
        if is_active is not None and not isinstance(is_active, bool):
            raise ClienteleError("VALIDATION_FAILED", errors={"is_active": ["Must be true or false"]})
        courier = courier_service.update(code, name=data.get("name"), is_active=is_active)
        return JsonResponse({"courier": serialize_courier(courier)})

    def delete(self, request, code):
        self.auth.require_admin()
        courier_service.delete(code)
        return JsonResponse({"success": True})


# ======================================================================
# Admin
# ======================================================================


class AdminSyncView(ApiView):
    def post(self, request, code):
        self.auth.require_admin()
        action = self.json_body().get("action", "match")
        outcome = sync_service.trigger_sync(code, action)
        return JsonResponse(
            {
                "success": outcome.success,
                "status": outcome.status,
                "contact_id": outcome.contact_id,
                "error": outcome.error,
            }
        )


class AdminSyncProfileView(ApiView):
    def post(self, request, code):
        self.auth.require_admin()
        outcome = sync_service.sync_profile(code)
        return JsonResponse(
            {"success": outcome.success, "status": outcome.status, "error": outcome.error}
        )


class AdminResetSyncView(ApiView):
    def post(self, request, code):
        self.auth.require_admin()
        cust = sync_service.reset_sync_status(code)
        return JsonResponse({"sync": serialize_sync(cust)})


class AdminLedgerLinkView(ApiView):
    def post(self, request, code):
        self.auth.require_admin()
        form = LedgerLinkForm(self.json_body())
        if not form.is_valid():
            raise ClienteleError("VALIDATION_FAILED", errors=form_errors(form))
        cust = sync_service.link_contact(code, form.cleaned_data["contact_id"])
        return JsonResponse({"sync": serialize_sync(cust)})

    def delete(self, request, code):
        self.auth.require_admin()
        cust = sync_service.unlink_contact(code)
        return JsonResponse({"sync": serialize_sync(cust)})


class AdminLedgerContactsView(ApiView):
    """Search ledger contacts to pick one for a manual link."""

    def get(self, request):
        self.auth.require_admin()
        query = request.GET.get("q", "")
        contacts = sync_service.search_contacts(query)
        response = JsonResponse(
            {"contacts": [serialize_contact(c) for c in contacts], "query": query}
        )
        add_never_cache_headers(response)
        return response


class AdminMarkDeliveredView(ApiView):
    def post(self, request, code):
        self.auth.require_admin()
        notes = self.json_body().get("notes", "")
        cust = delivery_service.mark_delivered(code, notes=notes, user=self.auth.user)
        return JsonResponse({"delivery": serialize_delivery(cust)})


class AdminResetDeliveryView(ApiView):
    def post(self, request, code):
        self.auth.require_admin()
        notes = self.json_body().get("notes", "")
        cust = delivery_service.reset_status(code, notes=notes, user=self.auth.user)
        return JsonResponse({"delivery": serialize_delivery(cust)})


class AdminDeliveryLogView(ApiView):
    def get(self, request, code):
        self.auth.require_admin()
        logs = delivery_service.history(code)
        return JsonResponse({"logs": [serialize_delivery_log(log) for log in logs]})


class AdminBulkDeliveryView(ApiView):
    """POST {"customer_codes": [...], "notes": "..."} to one bulk delivery operation."""

    operation = None

    def post(self, request):
        self.auth.require_admin()
        data = self.json_body()
        codes = data.get("customer_codes")
        if not isinstance(codes, list):
            raise ClienteleError(
                "VALIDATION_FAILED", errors={"customer_codes": ["Expected a list of customer codes"]}
            )
        updated = self.operation(codes, notes=data.get("notes", ""), user=self.auth.user)
        return JsonResponse({"updated": updated})


class AdminBulkMarkDeliveredView(AdminBulkDeliveryView):
    operation = staticmethod(delivery_service.bulk_mark_delivered)


class AdminBulkResetStatusView(AdminBulkDeliveryView):
    operation = staticmethod(delivery_service.bulk_reset_status)


class LedgerAuthorizeView(ApiView):
    """Redirect an admin to the ledger's OAuth consent page."""

    def get(self, request):
        self.auth.require_admin()
        ledger = sync_service.get_ledger()
        if not hasattr(ledger, "authorization_url") or not ledger.is_configured():
            raise ClienteleError("NOT_CONNECTED", message="Ledger OAuth is not configured")
        return HttpResponseRedirect(ledger.authorization_url())


class LedgerCallbackView(ApiView):
    """OAuth redirect target: store the tokens for the granted code."""

    def get(self, request):
        self.auth.require_admin()
        if request.GET.get("error"):
            raise ClienteleError(
                "VALIDATION_FAILED", message=f"Authorization denied: {request.GET['error']}"
            )
        code = request.GET.get("code")
        if not code:
            raise ClienteleError("VALIDATION_FAILED", errors={"code": ["Missing authorization code"]})

        sync_service.get_ledger().exchange_code(code)
        logger.info("Ledger connected by %s", self.auth.user)
        return JsonResponse({"connected": True})


# ======================================================================
# Cron
# ======================================================================


class CronView(ApiView):
    """Base for scheduler-invoked endpoints (G6)."""

    def dispatch(self, request, *args, **kwargs):
        try:
            Gates.cron_authenticity(
                request.headers.get("Authorization", ""), clientele_settings.CRON_SECRET
            )
        except ClienteleError as exc:
            logger.warning("Cron %s rejected: %s", request.path, exc.message)
            return error_response(exc)
        return super().dispatch(request, *args, **kwargs)


class CronLedgerSyncView(CronView):
    def get(self, request):
        summary = sync_service.process_queue()
        return JsonResponse({"success": True, **summary.as_dict()})
