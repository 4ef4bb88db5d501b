"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import logging
from urllib.parse import parse_qsl

from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.views import APIView

from competitions.domain.errors import DomainError, ErrorCode
from competitions.handlers.serializers import (
    DancerFinancesSerializer,
    EftPaymentSerializer,
    EntryDraftSerializer,
    EventEntrySerializer,
    FeeBreakdownSerializer,
    FeeQuoteSerializer,
    PayFastInitiateSerializer,
)
from competitions.handlers.throttling import RegistrationRateThrottle
from competitions.services.entry_service import EntryService
from competitions.services.fee_service import FeeService
from competitions.services.finance_service import FinanceService
from competitions.services.payfast import PayFastConfig, PayFastGateway
from competitions.services.payment_service import PaymentService
from competitions.services.registration_service import RegistrationFeeTracker
from competitions.services.webhook_service import PaymentWebhookReconciler
from competitions.stores.cached_store import CachedEventStore
from competitions.stores.django_store import (
    DjangoDancerStore,
    DjangoEntryStore,
    DjangoEventStore,
    DjangoPaymentStore,
)

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ENTRY_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DANCER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PARTICIPANT_COUNT_MISMATCH: status.HTTP_400_BAD_REQUEST,
    ErrorCode.DANCER_DISABLED: status.HTTP_403_FORBIDDEN,
    ErrorCode.UNTRUSTED_HOST: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_SIGNATURE: status.HTTP_403_FORBIDDEN,
}


def _error_response(error: DomainError) -> Response:
    return Response(
        {"success": False, "error": error.message, "code": error.code.value},
        status=_ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
    )


def _invalid_request(errors) -> Response:
    return Response(
        {"success": False, "error": "Invalid request", "details": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _client_ip(request: Request) -> str:
    """Peer address, or the hop appended by the outermost of NUM_PROXIES trusted proxies."""
    return BaseThrottle().get_ident(request)


def _tracker() -> RegistrationFeeTracker:
    return RegistrationFeeTracker(DjangoDancerStore())


def _events() -> CachedEventStore:
    return CachedEventStore(DjangoEventStore())


def _entry_service() -> EntryService:
    return EntryService(_events(), DjangoDancerStore(), DjangoEntryStore(), DjangoPaymentStore(), _tracker())


def _gateway() -> PayFastGateway:
    return PayFastGateway(PayFastConfig.from_settings())


class CompetitionsAPIView(APIView):
    """Maps domain errors to status codes; anything unexpected becomes a generic 500."""

    def handle_exception(self, exc):
        if isinstance(exc, DomainError):
            return _error_response(exc)
        if isinstance(exc, APIException):
            return super().handle_exception(exc)
        logger.exception("Unhandled error in %s", type(self).__name__)
        return Response(
            {"success": False, "error": "Internal server error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class FeeQuoteView(CompetitionsAPIView):
    """Handler for GET|POST /api/fees"""

    def get(self, request: Request) -> Response:
        data = request.query_params.dict()
        if "participantIds" in request.query_params:
            data["participantIds"] = [p for p in request.query_params.get("participantIds").split(",") if p]
        return self._quote(data)

    def post(self, request: Request) -> Response:
        return self._quote(request.data)

    def _quote(self, data) -> Response:
        serializer = FeeQuoteSerializer(data=data)
        if not serializer.is_valid():
            return _invalid_request(serializer.errors)
        params = serializer.validated_data
        event_id = str(params["event_id"]) if params.get("event_id") else None

        service = FeeService(_events(), _tracker())
        if params.get("participant_ids"):
            breakdown = service.calculate_smart_fee(
                params["mastery_level"],
                params["performance_type"],
                params["participant_ids"],
                event_id=event_id,
                solo_count=params["solo_count"],
            )
        else:
            breakdown = service.calculate_fee(
                params["mastery_level"],
                params["performance_type"],
                params["participant_count"],
                event_id=event_id,
                solo_count=params["solo_count"],
                include_registration=params["include_registration"],
            )
        return Response({"success": True, "fee": FeeBreakdownSerializer(breakdown).data})


class EventEntryCreateView(CompetitionsAPIView):
    """Handler for POST /api/event-entries"""

    throttle_classes = [RegistrationRateThrottle]

    def post(self, request: Request) -> Response:
        serializer = EntryDraftSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid_request(serializer.errors)
        entry = _entry_service().submit_entry(EntryDraftSerializer.to_draft(serializer.validated_data))
        return Response(
            {"success": True, "eventEntry": EventEntrySerializer(entry).data},
            status=status.HTTP_201_CREATED,
        )


class EntryApproveView(CompetitionsAPIView):
    """Handler for PATCH /api/event-entries/{entry_id}/approve"""

    def patch(self, request: Request, entry_id: str) -> Response:
        result = _entry_service().approve_entry(entry_id)
        return Response(
            {
                "success": True,
                "message": "Event entry approved successfully",
                "eventEntry": EventEntrySerializer(result.entry).data,
                "registrationFees": [
                    {
                        "participantId": r.participant_id,
                        "eodsaId": r.public_id,
                        "success": r.success,
                        "reason": r.reason,
                    }
                    for r in result.registration_results
                ],
            }
        )


class EftPaymentView(CompetitionsAPIView):
    """Handler for POST /api/payments/eft"""

    throttle_classes = [RegistrationRateThrottle]

    def post(self, request: Request) -> Response:
        serializer = EftPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid_request(serializer.errors)
        params = serializer.validated_data
        submission = _entry_service().submit_eft(
            [EntryDraftSerializer.to_draft(item) for item in params["entries"]],
            invoice_number=params["invoice_number"],
            user_email=params["user_email"],
            user_name=params["user_name"],
            eodsa_id=params["eodsa_id"],
            item_description=params["item_description"],
        )
        return Response(
            {
                "success": True,
                "message": "EFT payment submitted for verification",
                "paymentId": submission.payment_log_id,
                "totalAmount": submission.total.amount,
                "entries": EventEntrySerializer(submission.entries, many=True).data,
            },
            status=status.HTTP_201_CREATED,
        )


class PayFastInitiateView(CompetitionsAPIView):
    """Handler for POST /api/payments/payfast/initiate"""

    throttle_classes = [RegistrationRateThrottle]

    def post(self, request: Request) -> Response:
        serializer = PayFastInitiateSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid_request(serializer.errors)
        params = serializer.validated_data
        service = PaymentService(DjangoPaymentStore(), _entry_service(), _gateway())
        session = service.initiate_payfast_payment(
            [EntryDraftSerializer.to_draft(item) for item in params["entries"]],
            email=params["email"],
            first_name=params["first_name"],
            last_name=params["last_name"],
            item_name=params["item_name"],
        )
        return Response(
            {
                "success": True,
                "paymentId": session.payment.payment_id,
                "amount": session.payment.amount.amount,
                "processUrl": session.process_url,
                "formFields": session.form_fields,
            },
            status=status.HTTP_201_CREATED,
        )


class PayFastWebhookView(APIView):
    """Handler for GET|POST /api/payments/payfast/webhook

    Protocol failures answer 400/403/404. Anything unexpected is recorded in
    the payment log and answered 200, so PayFast does not keep retrying.
    """

    authentication_classes = []
    permission_classes = []

    def get(self, request: Request) -> Response:
        return Response(
            {
                "success": True,
                "message": "PayFast webhook endpoint is accessible",
                "timestamp": timezone.now().isoformat(),
            }
        )

    def post(self, request: Request) -> Response:
        raw_body = request.body.decode("utf-8", errors="replace")
        client_ip = _client_ip(request)
        user_agent = request.META.get("HTTP_USER_AGENT", "")
        reconciler = PaymentWebhookReconciler(DjangoPaymentStore(), DjangoEntryStore(), _tracker(), _gateway())
        try:
            outcome = reconciler.handle_notification(raw_body, client_ip=client_ip, user_agent=user_agent)
        except DomainError as exc:
            return _error_response(exc)
        except Exception as exc:
            payment_id = dict(parse_qsl(raw_body)).get("m_payment_id", "")
            logger.exception("PayFast webhook failed for payment %s", payment_id)
            reconciler.record_failure(payment_id, exc, client_ip=client_ip, user_agent=user_agent)
            return Response({"success": False, "error": "Internal server error"})

        body = {"success": True, "payment_id": outcome.payment_id, "status": outcome.status.value}
        if outcome.message:
            body["message"] = outcome.message
        return Response(body)


class DancerFinancesView(CompetitionsAPIView):
    """Handler for GET /api/dancers/{eodsa_id}/finances"""

    def get(self, request: Request, eodsa_id: str) -> Response:
        finances = FinanceService(DjangoDancerStore(), DjangoEntryStore(), _events()).dancer_finances(eodsa_id)
        return Response({"success": True, **DancerFinancesSerializer(finances).data})
