"""
Data models for Dispatch Gateway Service.
"""
from django.db import models
from django.db.models import Q


class Customer(models.Model):
    """
    Shipper contact as reported by the carrier API.
    Matched by email first, then phone; merged on every sighting.
    """

    class ContactType(models.TextChoices):
        INDIVIDUAL = 'INDIVIDUAL', 'Individual'
        BUSINESS = 'BUSINESS', 'Business'

    name = models.CharField(max_length=255, null=True, blank=True)
    email = models.CharField(max_length=254, null=True, blank=True, db_index=True)
    phone = models.CharField(max_length=50, null=True, blank=True, db_index=True)
    contact_type = models.CharField(
        max_length=20,
        choices=ContactType.choices,
        default=ContactType.BUSINESS
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Customer {self.id} - {self.name or self.email or self.phone}"


class Load(models.Model):
    """
    Ledger entry for one externally tracked shipment.

    Identified by the carrier order identifier, or by (VIN, partner reference)
    once the vehicle has been moved to another order.
    """

    PICKED_UP_STATUSES = ('PICKED_UP', 'IN_TRANSIT')
    DELIVERED_STATUSES = ('DELIVERED',)

    order_id = models.CharField(max_length=100, db_index=True)
    external_guid = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    reference_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='loads'
    )

    vehicle_year = models.CharField(max_length=10, null=True, blank=True)
    vehicle_make = models.CharField(max_length=100, null=True, blank=True)
    vehicle_model = models.CharField(max_length=100, null=True, blank=True)
    vehicle_vin = models.CharField(max_length=32, null=True, blank=True, db_index=True)

    pickup_address = models.TextField(null=True, blank=True)
    pickup_city = models.CharField(max_length=100, null=True, blank=True)
    pickup_state = models.CharField(max_length=50, null=True, blank=True)
    pickup_zip = models.CharField(max_length=20, null=True, blank=True)
    pickup_date = models.DateField(null=True, blank=True)
    pickup_time = models.DateTimeField(null=True, blank=True)

    delivery_address = models.TextField(null=True, blank=True)
    delivery_city = models.CharField(max_length=100, null=True, blank=True)
    delivery_state = models.CharField(max_length=50, null=True, blank=True)
    delivery_zip = models.CharField(max_length=20, null=True, blank=True)
    delivery_date = models.DateField(null=True, blank=True)
    delivery_time = models.DateTimeField(null=True, blank=True)

    status = models.CharField(max_length=50, null=True, blank=True, db_index=True)
    carrier_name = models.CharField(max_length=255, null=True, blank=True)
    carrier_phone = models.CharField(max_length=50, null=True, blank=True)
    driver_name = models.CharField(max_length=255, null=True, blank=True)
    driver_phone = models.CharField(max_length=50, null=True, blank=True)
    bol_url = models.TextField(null=True, blank=True)

    picked_up_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['vehicle_vin', 'reference_id'],
                condition=Q(vehicle_vin__isnull=False, reference_id__isnull=False),
                name='unique_load_vin_reference',
            ),
        ]

    def __str__(self):
        return f"Load {self.order_id} - {self.status}"

    @property
    def customer_name(self):
        return self.customer.name if self.customer else None

    @property
    def customer_email(self):
        return self.customer.email if self.customer else None

    @property
    def customer_phone(self):
        return self.customer.phone if self.customer else None


class WebhookConfig(models.Model):
    """Outbound webhook endpoint for a partner, one row per partner name."""

    name = models.CharField(max_length=50, unique=True)
    webhook_url = models.URLField(max_length=500)
    secret_token = models.CharField(max_length=255, null=True, blank=True)
    enabled = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Webhook {self.name} ({'enabled' if self.enabled else 'disabled'})"


class WebhookDeliveryLog(models.Model):
    """
    Records each attempt to deliver a status update to a partner.
    Written before the network call; doubles as the retry queue.
    """

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        SUCCESS = 'SUCCESS', 'Success'
        FAILED = 'FAILED', 'Failed'

    webhook_config = models.ForeignKey(
        WebhookConfig,
        on_delete=models.PROTECT,
        related_name='deliveries'
    )
    load = models.ForeignKey(
        Load,
        on_delete=models.PROTECT,
        related_name='webhook_deliveries'
    )
    payload = models.JSONField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    status_code = models.PositiveIntegerField(null=True, blank=True)
    response_body = models.TextField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    retry_count = models.PositiveIntegerField(default=0)
    retried_by = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='retry_of'
    )
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'retry_count'], name='loads_deliv_status_retry_idx'),
        ]

    def __str__(self):
        return f"Delivery {self.id} for Load {self.load_id} - {self.status}"


class CarrierEvent(models.Model):
    """
    Represents an inbound webhook received from the carrier API.
    Stores the raw payload and the outcome of reconciling it.
    """

    class Status(models.TextChoices):
        RECEIVED = 'RECEIVED', 'Received'
        PROCESSED = 'PROCESSED', 'Processed'
        REJECTED = 'REJECTED', 'Rejected'
        FAILED = 'FAILED', 'Failed'

    event_type = models.CharField(max_length=100, null=True, blank=True)
    raw_payload = models.JSONField()
    source_headers = models.JSONField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.RECEIVED,
        db_index=True
    )
    rejection_reason = models.CharField(max_length=255, null=True, blank=True)
    load = models.ForeignKey(
        Load,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='carrier_events'
    )
    received_at = models.DateTimeField(auto_now_add=True, db_index=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-received_at']

    def __str__(self):
        return f"Carrier event {self.id} ({self.event_type}) - {self.status}"


class OrderSequence(models.Model):
    """Last order-number suffix handed out per prefix (e.g. K111925CA)."""

    prefix = models.CharField(max_length=50, unique=True)
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.prefix} -> {self.last_value}"
