"""
DRF views for payments app.

This module provides API views for:
- The plan catalog
- Checkout session creation
- Payment method listing and default updates
- Invoice history and the current subscription

Related files:
    - services/: CheckoutService, CustomerService
    - serializers.py: Request/response serializers
    - urls.py: URL routing
    - webhooks/views.py: Stripe webhook endpoint

Endpoints:
    GET /api/v1/payments/plans/ - Plan catalog
    POST /api/v1/payments/checkout/ - Create checkout session
    POST /api/v1/payments/payment-methods/default/ - Set default payment method
    GET /api/v1/payments/payment-methods/ - List own payment methods
    GET /api/v1/payments/invoices/ - List own invoices
    GET /api/v1/payments/subscription/ - Current active subscription

Security:
    - All endpoints require authentication
    - Domain errors are rendered with their error code and HTTP status
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError

from payments.adapters import is_retryable_stripe_error
from payments.exceptions import PaymentValidationError
from payments.models import Invoice, PaymentMethod, Subscription
from payments.plans import list_plans
from payments.serializers import (
    CheckoutRequestSerializer,
    CheckoutResponseSerializer,
    DefaultPaymentMethodRequestSerializer,
    InvoiceSerializer,
    PaymentMethodSerializer,
    PlanSerializer,
    SubscriptionSerializer,
)
from payments.services import CheckoutService, CustomerService
from payments.state_machines import InvoiceStatus

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 30


def error_response(error: BaseApplicationError) -> Response:
    """Render a domain error; transient Stripe failures get a Retry-After hint."""
    response = Response(error.to_dict(), status=error.http_status)
    if is_retryable_stripe_error(error) or error.details.get("retryable"):
        response["Retry-After"] = str(RETRY_AFTER_SECONDS)
    return response


class PlanListView(APIView):
    """
    Plan catalog.

    GET /api/v1/payments/plans/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List plans",
        tags=["Payments"],
        responses={200: PlanSerializer(many=True)},
    )
    def get(self, request):
        return Response(PlanSerializer(list_plans(), many=True).data)


class CheckoutView(APIView):
    """
    Create a Stripe Checkout session for a plan.

    POST /api/v1/payments/checkout/

    Request body:
        {"plan_type": "premium", "billing_cycle": "monthly"}

    Returns:
        201 with {session_id, checkout_url, invoice_id, amount, currency}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Start checkout",
        tags=["Payments"],
        request=CheckoutRequestSerializer,
        responses={
            201: CheckoutResponseSerializer,
            400: OpenApiResponse(description="Invalid plan or billing cycle"),
            502: OpenApiResponse(description="Stripe could not create the session"),
        },
    )
    def post(self, request):
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            checkout = CheckoutService.create_checkout_session(
                user=request.user,
                plan_type=serializer.validated_data["plan_type"],
                billing_cycle=serializer.validated_data["billing_cycle"],
            )
        except BaseApplicationError as e:
            logger.warning(
                f"Checkout failed: {e.error_code}",
                extra={"user_id": str(request.user.pk), "error_code": e.error_code},
            )
            return error_response(e)

        return Response(
            CheckoutResponseSerializer(checkout).data,
            status=status.HTTP_201_CREATED,
        )


class DefaultPaymentMethodView(APIView):
    """
    Make a payment method the user's default.

    POST /api/v1/payments/payment-methods/default/

    Request body:
        {"payment_method_id": "pm_xxx"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Set default payment method",
        tags=["Payments"],
        request=DefaultPaymentMethodRequestSerializer,
        responses={
            200: PaymentMethodSerializer,
            403: OpenApiResponse(description="Payment method belongs to another customer"),
            502: OpenApiResponse(description="Stripe could not be reached"),
        },
    )
    def post(self, request):
        serializer = DefaultPaymentMethodRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            payment_method = CustomerService.update_payment_method(
                user=request.user,
                payment_method_id=serializer.validated_data["payment_method_id"],
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(PaymentMethodSerializer(payment_method).data)


class PaymentMethodListView(generics.ListAPIView):
    """
    Own payment methods, default first.

    GET /api/v1/payments/payment-methods/
    """

    permission_classes = [IsAuthenticated]
    serializer_class = PaymentMethodSerializer
    pagination_class = None

    @extend_schema(summary="List payment methods", tags=["Payments"])
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return PaymentMethod.objects.for_user(self.request.user).order_by(
            "-is_default", "created_at"
        )


class InvoiceListView(generics.ListAPIView):
    """
    Own invoices, newest first.

    GET /api/v1/payments/invoices/?status=<status>

    The page carries ``stats`` with paid, unpaid and overdue counts over
    all of the user's invoices, whatever the filter.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = InvoiceSerializer

    @extend_schema(
        summary="List invoices",
        tags=["Payments"],
        parameters=[
            OpenApiParameter(
                "status",
                str,
                enum=InvoiceStatus.values,
                description="Only invoices in this state",
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def list(self, request, *args, **kwargs):
        invoice_status = request.query_params.get("status")
        if invoice_status and invoice_status not in InvoiceStatus.values:
            return error_response(
                PaymentValidationError(
                    f"Unknown invoice status: {invoice_status}",
                    error_code="INVALID_INVOICE_STATUS",
                    details={"status": invoice_status},
                )
            )

        response = super().list(request, *args, **kwargs)
        response.data["stats"] = Invoice.objects.for_user(request.user).stats()
        return response

    def get_queryset(self):
        queryset = Invoice.objects.for_user(self.request.user)
        invoice_status = self.request.query_params.get("status")
        if invoice_status:
            queryset = queryset.filter(status=invoice_status)
        return queryset.order_by("-created_at")

class SubscriptionView(APIView):
    """
    Current user's active subscription.

    GET /api/v1/payments/subscription/

    Returns:
        Subscription details or 404 if none is active
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current subscription",
        tags=["Payments"],
        responses={
            200: SubscriptionSerializer,
            404: OpenApiResponse(description="No active subscription"),
        },
    )
    def get(self, request):
        subscription = Subscription.objects.active().filter(user=request.user).first()
        if subscription is None:
            return Response(
                {"error": "No active subscription", "error_code": "SUBSCRIPTION_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(SubscriptionSerializer(subscription).data)
