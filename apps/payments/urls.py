"""URL routing for payments."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import PaymentViewSet, StripeWebhookView, VerifyPaymentView

router = DefaultRouter()
router.register(r"", PaymentViewSet, basename="payment")

urlpatterns = [
    path("verify/", VerifyPaymentView.as_view(), name="payment-verify"),
    path("webhook/stripe/", StripeWebhookView.as_view(), name="payment-stripe-webhook"),
    path("", include(router.urls)),
]
