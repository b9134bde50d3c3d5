"""
Serializers for the partner and operator API.
"""
from rest_framework import serializers

from loads.models import Load, WebhookConfig, WebhookDeliveryLog


class WebhookConfigSerializer(serializers.ModelSerializer):
    """The shared secret is accepted on write and never echoed back."""

    secret_token = serializers.CharField(
        write_only=True,
        required=False,
        allow_blank=True,
        allow_null=True,
        max_length=255
    )
    enabled = serializers.BooleanField(default=True)

    class Meta:
        model = WebhookConfig
        fields = ('id', 'name', 'webhook_url', 'secret_token', 'enabled', 'created_at', 'updated_at')
        read_only_fields = ('id', 'name', 'created_at', 'updated_at')


class WebhookEnableSerializer(serializers.Serializer):
    enabled = serializers.BooleanField(default=True)


class ReferenceIdSerializer(serializers.Serializer):
    reference_id = serializers.CharField(max_length=100, trim_whitespace=True)


class RetrySweepSerializer(serializers.Serializer):
    max_retries = serializers.IntegerField(min_value=1, required=False)


class LoadSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(read_only=True)
    customer_email = serializers.CharField(read_only=True)
    customer_phone = serializers.CharField(read_only=True)

    class Meta:
        model = Load
        fields = (
            'id', 'order_id', 'external_guid', 'reference_id', 'status',
            'vehicle_year', 'vehicle_make', 'vehicle_model', 'vehicle_vin',
            'pickup_address', 'pickup_city', 'pickup_state', 'pickup_zip', 'pickup_date', 'pickup_time',
            'delivery_address', 'delivery_city', 'delivery_state', 'delivery_zip', 'delivery_date',
            'delivery_time',
            'carrier_name', 'carrier_phone', 'driver_name', 'driver_phone', 'bol_url',
            'picked_up_at', 'delivered_at',
            'customer_name', 'customer_email', 'customer_phone',
            'created_at', 'updated_at',
        )
        read_only_fields = fields


class WebhookDeliveryLogSerializer(serializers.ModelSerializer):
    order_id = serializers.CharField(source='load.order_id', read_only=True)
    reference_id = serializers.CharField(source='load.reference_id', read_only=True)
    vehicle_vin = serializers.CharField(source='load.vehicle_vin', read_only=True)
    load_status = serializers.CharField(source='load.status', read_only=True)

    class Meta:
        model = WebhookDeliveryLog
        fields = (
            'id', 'load', 'order_id', 'reference_id', 'vehicle_vin', 'load_status',
            'payload', 'status', 'status_code', 'response_body', 'error_message',
            'retry_count', 'retried_by', 'delivered_at', 'created_at', 'updated_at',
        )
        read_only_fields = fields
