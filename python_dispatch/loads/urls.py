"""
URL configuration for loads app.
"""
from django.urls import path
from loads.views import (
    CarrierWebhookView,
    LoadPartnerPreviewView,
    LoadReferenceIdView,
    LoadSendWebhookView,
    LoadSyncView,
    PartnerOrderView,
    WebhookConfigEnableView,
    WebhookConfigView,
    WebhookDeliveryListView,
    WebhookRetryView,
)

urlpatterns = [
    path('webhooks/carrier/', CarrierWebhookView.as_view(), name='carrier-webhook'),
    path('api/partner/orders/', PartnerOrderView.as_view(), name='partner-orders'),
    path('api/partner/webhook-config/', WebhookConfigView.as_view(), name='partner-webhook-config'),
    path(
        'api/partner/webhook-config/enable/',
        WebhookConfigEnableView.as_view(),
        name='partner-webhook-config-enable'
    ),
    path(
        'api/partner/loads/<str:identifier>/reference-id/',
        LoadReferenceIdView.as_view(),
        name='partner-load-reference-id'
    ),
    path(
        'api/partner/loads/<str:identifier>/send-webhook/',
        LoadSendWebhookView.as_view(),
        name='partner-load-send-webhook'
    ),
    path('api/partner/webhook-deliveries/', WebhookDeliveryListView.as_view(), name='partner-webhook-deliveries'),
    path(
        'api/partner/webhook-deliveries/retry/',
        WebhookRetryView.as_view(),
        name='partner-webhook-deliveries-retry'
    ),
    path('api/loads/sync/<str:guid>/', LoadSyncView.as_view(), name='load-sync'),
    path('api/loads/<str:identifier>/preview-partner/', LoadPartnerPreviewView.as_view(), name='load-preview-partner'),
]
