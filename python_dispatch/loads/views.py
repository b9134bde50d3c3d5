"""
API views for Dispatch Gateway Service.
"""
import re
import logging
import uuid
from dataclasses import asdict

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.exceptions import ParseError
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from loads.models import CarrierEvent, WebhookConfig, WebhookDeliveryLog
from loads.permissions import HasPartnerApiKey, PartnerApiKeyAuthentication
from loads.serializers import (
    LoadSerializer,
    ReferenceIdSerializer,
    RetrySweepSerializer,
    WebhookConfigSerializer,
    WebhookDeliveryLogSerializer,
    WebhookEnableSerializer,
)
from loads.services.carrier_client import UpstreamFetchError
from loads.services.order_builder import OrderValidationError
from loads.services.reconciliation import MissingIdentifierError, find_load_by_identifier, sync_order
from loads.services.submission import submit_partner_orders
from loads.services.webhook_dispatcher import (
    build_partner_payload,
    dispatch,
    retry_failed_deliveries,
    save_webhook_config,
    set_webhook_enabled,
)
from loads.tasks import process_carrier_event

logger = logging.getLogger(__name__)

GUID_RE = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)


def _load_not_found(correlation_id):
    return Response(
        {
            'success': False,
            'message': 'Load not found',
            'correlation_id': correlation_id
        },
        status=status.HTTP_404_NOT_FOUND
    )


def _internal_error(correlation_id):
    return Response(
        {
            'success': False,
            'error': 'Internal server error',
            'correlation_id': correlation_id
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


@method_decorator(csrf_exempt, name='dispatch')
class CarrierWebhookView(APIView):
    """
    Webhook endpoint for order events from the carrier platform.

    POST /webhooks/carrier/
    - Accepts JSON payload
    - Stores raw payload and headers
    - Enqueues async reconciliation
    - Returns 200 OK with event_id and correlation_id
    """

    def post(self, request):
        """
        Returns:
            200 OK: Event accepted and queued for processing
            400 Bad Request: Malformed JSON or empty payload
            500 Internal Server Error: Unexpected error
        """
        correlation_id = str(uuid.uuid4())

        try:
            payload = request.data

            if not payload:
                logger.warning(f"Empty carrier payload received, correlation_id={correlation_id}")
                return Response(
                    {
                        'error': 'Empty payload',
                        'correlation_id': correlation_id
                    },
                    status=status.HTTP_400_BAD_REQUEST
                )

            source_headers = {
                'content-type': request.META.get('CONTENT_TYPE', ''),
                'user-agent': request.META.get('HTTP_USER_AGENT', ''),
                'x-forwarded-for': request.META.get('HTTP_X_FORWARDED_FOR', ''),
                'remote-addr': request.META.get('REMOTE_ADDR', ''),
            }
            event_type = None
            if isinstance(payload, dict):
                event_type = payload.get('event') or payload.get('event_type')

            event = CarrierEvent.objects.create(
                event_type=str(event_type)[:100] if event_type else None,
                raw_payload=payload,
                source_headers=source_headers,
                status=CarrierEvent.Status.RECEIVED
            )
            logger.info(
                f"Carrier event {event.id} ({event_type}) received and stored, "
                f"correlation_id={correlation_id}"
            )

            process_carrier_event.delay(event.id)

            logger.info(
                f"Carrier event {event.id} enqueued for processing, "
                f"correlation_id={correlation_id}"
            )

            return Response(
                {
                    'status': 'accepted',
                    'event_id': event.id,
                    'correlation_id': correlation_id
                },
                status=status.HTTP_200_OK
            )

        except ParseError as e:
            logger.warning(f"Malformed JSON payload: {e}, correlation_id={correlation_id}")
            return Response(
                {
                    'error': 'Malformed JSON',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_400_BAD_REQUEST
            )
        except Exception as e:
            logger.error(
                f"Error processing carrier webhook: {e}, correlation_id={correlation_id}",
                exc_info=True
            )
            return _internal_error(correlation_id)


class PartnerOrderView(APIView):
    """
    POST /api/partner/orders/

    Creates carrier orders for a partner submission, up to three vehicles
    per order. Returns 200 when every order was created, 207 on partial
    success and 500 when none were.
    """
    authentication_classes = [PartnerApiKeyAuthentication]
    permission_classes = [HasPartnerApiKey]

    def post(self, request):
        correlation_id = str(uuid.uuid4())

        try:
            results = submit_partner_orders(request.data)
        except OrderValidationError as e:
            logger.warning(f"Partner order rejected ({e.code}): {e}, correlation_id={correlation_id}")
            return Response(
                {
                    'success': False,
                    'code': e.code,
                    'message': str(e),
                    'correlation_id': correlation_id
                },
                status=status.HTTP_400_BAD_REQUEST
            )
        except ParseError as e:
            logger.warning(f"Malformed JSON payload: {e}, correlation_id={correlation_id}")
            return Response(
                {
                    'error': 'Malformed JSON',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_400_BAD_REQUEST
            )
        except Exception as e:
            logger.error(f"Error creating partner orders: {e}, correlation_id={correlation_id}", exc_info=True)
            return _internal_error(correlation_id)

        created = [result for result in results if result['status'] == 'created']
        failed = [result for result in results if result['status'] == 'failed']
        logger.info(
            f"Partner submission: {len(created)} created, {len(failed)} failed, "
            f"correlation_id={correlation_id}"
        )

        if not created:
            return Response(
                {
                    'success': False,
                    'message': 'Failed to create orders',
                    'errors': [
                        {'order_number': result['order_number'], 'error': result['error']}
                        for result in failed
                    ],
                    'data': results,
                    'correlation_id': correlation_id
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        all_created = len(created) == len(results)
        return Response(
            {
                'success': True,
                'message': (
                    f"{len(created)} order(s) created successfully" if all_created
                    else f"{len(created)} order(s) created, {len(failed)} failed"
                ),
                'data': results,
                'summary': {
                    'total': len(results),
                    'created': len(created),
                    'failed': len(failed),
                },
                'correlation_id': correlation_id
            },
            status=status.HTTP_200_OK if all_created else status.HTTP_207_MULTI_STATUS
        )


class WebhookConfigView(APIView):
    """
    GET  /api/partner/webhook-config/  current partner webhook (secret omitted)
    POST /api/partner/webhook-config/  create or replace it
    """

    def get(self, request):
        config = WebhookConfig.objects.filter(name=settings.PARTNER_WEBHOOK_NAME).first()
        if config is None:
            return Response(
                {'success': False, 'message': 'Partner webhook not configured'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response({'success': True, 'data': WebhookConfigSerializer(config).data})

    def post(self, request):
        serializer = WebhookConfigSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'success': False, 'errors': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        data = serializer.validated_data
        config = save_webhook_config(
            webhook_url=data['webhook_url'],
            secret_token=data.get('secret_token'),
            enabled=data['enabled'],
        )
        return Response({
            'success': True,
            'message': 'Partner webhook configuration saved',
            'data': WebhookConfigSerializer(config).data
        })


class WebhookConfigEnableView(APIView):
    """PUT /api/partner/webhook-config/enable/"""

    def put(self, request):
        serializer = WebhookEnableSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        enabled = serializer.validated_data['enabled']

        config = set_webhook_enabled(enabled)
        if config is None:
            return Response(
                {'success': False, 'message': 'Partner webhook configuration not found'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response({
            'success': True,
            'message': f"Partner webhook {'enabled' if enabled else 'disabled'}",
            'data': WebhookConfigSerializer(config).data
        })


class LoadReferenceIdView(APIView):
    """
    PUT /api/partner/loads/<identifier>/reference-id/

    Attaches a partner reference to a load and sends its status.
    """

    def put(self, request, identifier):
        correlation_id = str(uuid.uuid4())
        serializer = ReferenceIdSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'success': False, 'message': 'reference_id is required', 'errors': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        load = find_load_by_identifier(identifier)
        if load is None:
            return _load_not_found(correlation_id)

        load.reference_id = serializer.validated_data['reference_id']
        try:
            with transaction.atomic():
                load.save(update_fields=['reference_id', 'updated_at'])
        except IntegrityError:
            logger.warning(
                f"Reference {load.reference_id} already used for VIN {load.vehicle_vin}, "
                f"correlation_id={correlation_id}"
            )
            return Response(
                {
                    'success': False,
                    'message': 'Another load already has this VIN and reference_id',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_409_CONFLICT
            )
        logger.info(f"Load {load.id} reference_id set to {load.reference_id}, correlation_id={correlation_id}")

        result = dispatch(load)
        return Response({
            'success': True,
            'message': 'Reference ID updated',
            'data': LoadSerializer(load).data,
            'webhook_result': asdict(result) if result else None,
            'correlation_id': correlation_id
        })


class LoadSendWebhookView(APIView):
    """
    POST /api/partner/loads/<identifier>/send-webhook/

    Query parameters:
    - sync=true: refresh from the carrier first (best effort)
    - guid=<guid>: carrier GUID to refresh from, when the load has none
    """

    def post(self, request, identifier):
        correlation_id = str(uuid.uuid4())

        load = find_load_by_identifier(identifier)
        if load is None:
            return _load_not_found(correlation_id)

        if not load.reference_id:
            return Response(
                {
                    'success': False,
                    'message': 'Load does not have a reference_id. Set reference_id first.',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_400_BAD_REQUEST
            )

        if request.query_params.get('sync', '').lower() == 'true':
            guid = request.query_params.get('guid') or load.external_guid
            if not guid and GUID_RE.match(load.order_id or ''):
                guid = load.order_id

            if guid:
                try:
                    load = sync_order(guid)
                except (UpstreamFetchError, MissingIdentifierError) as e:
                    # Sending the stored state is still useful
                    logger.warning(
                        f"Sync before webhook failed for load {load.id}: {e}, "
                        f"using local data, correlation_id={correlation_id}"
                    )
            else:
                logger.warning(
                    f"Cannot sync load {load.id}: no carrier GUID known, "
                    f"correlation_id={correlation_id}"
                )

        result = dispatch(load)
        if result is None:
            return Response(
                {
                    'success': False,
                    'message': 'Failed to send webhook. Check webhook configuration and VIN.',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        return Response({
            'success': result.success,
            'message': 'Webhook sent to partner' if result.success else 'Failed to send webhook to partner',
            'data': {
                'load_id': load.id,
                'order_id': load.order_id,
                'reference_id': load.reference_id,
                'webhook_result': asdict(result),
            },
            'correlation_id': correlation_id
        })


class WebhookDeliveryListView(APIView):
    """
    GET /api/partner/webhook-deliveries/?load_id=&status=&limit=&offset=

    Newest first. load_id matches the load's primary key or order_id.
    """

    class Pagination(LimitOffsetPagination):
        default_limit = 50
        max_limit = 500

    def get(self, request):
        deliveries = (
            WebhookDeliveryLog.objects
            .select_related('load')
            .filter(webhook_config__name=settings.PARTNER_WEBHOOK_NAME)
            .order_by('-created_at', '-id')
        )

        load_id = request.query_params.get('load_id')
        if load_id:
            if load_id.isdigit():
                deliveries = deliveries.filter(Q(load_id=int(load_id)) | Q(load__order_id=load_id))
            else:
                deliveries = deliveries.filter(load__order_id=load_id)

        delivery_status = request.query_params.get('status')
        if delivery_status:
            deliveries = deliveries.filter(status=delivery_status.upper())

        paginator = self.Pagination()
        page = paginator.paginate_queryset(deliveries, request, view=self)
        return paginator.get_paginated_response(WebhookDeliveryLogSerializer(page, many=True).data)


class WebhookRetryView(APIView):
    """POST /api/partner/webhook-deliveries/retry/ runs the retry sweep once."""

    def post(self, request):
        serializer = RetrySweepSerializer(data=request.data or {})
        serializer.is_valid(raise_exception=True)

        succeeded = retry_failed_deliveries(max_retries=serializer.validated_data.get('max_retries'))
        return Response({
            'success': True,
            'message': f"{succeeded} webhook(s) delivered on retry",
            'retried': succeeded
        })


class LoadSyncView(APIView):
    """
    POST /api/loads/sync/<guid>/

    Pulls the order from the carrier, reconciles it and notifies the partner.
    """

    def post(self, request, guid):
        correlation_id = str(uuid.uuid4())

        try:
            load = sync_order(guid)
        except UpstreamFetchError as e:
            logger.error(f"Sync of order {guid} failed: {e}, correlation_id={correlation_id}")
            return Response(
                {
                    'success': False,
                    'message': 'Order not found at carrier' if e.not_found else f'Carrier API error: {e}',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_404_NOT_FOUND if e.not_found else status.HTTP_502_BAD_GATEWAY
            )
        except MissingIdentifierError as e:
            return Response(
                {'success': False, 'message': str(e), 'correlation_id': correlation_id},
                status=status.HTTP_422_UNPROCESSABLE_ENTITY
            )

        result = dispatch(load) if load.reference_id else None
        return Response({
            'success': True,
            'message': 'Load synced',
            'data': LoadSerializer(load).data,
            'webhook_result': asdict(result) if result else None,
            'correlation_id': correlation_id
        })


class LoadPartnerPreviewView(APIView):
    """GET /api/loads/<identifier>/preview-partner/ shows the payload dispatch would send."""

    def get(self, request, identifier):
        load = find_load_by_identifier(identifier)
        if load is None:
            return _load_not_found(str(uuid.uuid4()))

        return Response({
            'success': True,
            'data': {
                'load_id': load.id,
                'would_dispatch': bool(load.reference_id and load.vehicle_vin),
                'payload': build_partner_payload(load),
            }
        })
