"""
Django admin configuration for loads app.
"""
from django.contrib import admin
from loads.models import CarrierEvent, Customer, Load, OrderSequence, WebhookConfig, WebhookDeliveryLog


class WebhookDeliveryLogInline(admin.TabularInline):
    """Inline display of partner webhook deliveries for a load."""
    model = WebhookDeliveryLog
    extra = 0
    fields = ('status', 'status_code', 'retry_count', 'error_message', 'created_at', 'delivered_at')
    readonly_fields = fields
    can_delete = False
    show_change_link = True


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'email', 'phone', 'contact_type', 'updated_at')
    list_filter = ('contact_type',)
    search_fields = ('name', 'email', 'phone')
    readonly_fields = ('created_at', 'updated_at')


@admin.register(Load)
class LoadAdmin(admin.ModelAdmin):
    """Admin interface for Load model."""

    list_display = ('id', 'order_id', 'reference_id', 'vehicle_vin', 'status', 'picked_up_at', 'delivered_at',
                    'updated_at')
    list_filter = ('status', 'created_at')
    search_fields = ('order_id', 'external_guid', 'reference_id', 'vehicle_vin')
    readonly_fields = ('created_at', 'updated_at', 'picked_up_at', 'delivered_at')
    raw_id_fields = ('customer',)

    fieldsets = (
        ('Identity', {
            'fields': ('order_id', 'external_guid', 'reference_id', 'customer', 'status')
        }),
        ('Vehicle', {
            'fields': ('vehicle_year', 'vehicle_make', 'vehicle_model', 'vehicle_vin')
        }),
        ('Pickup', {
            'fields': ('pickup_address', 'pickup_city', 'pickup_state', 'pickup_zip', 'pickup_date', 'pickup_time'),
            'classes': ('collapse',)
        }),
        ('Delivery', {
            'fields': ('delivery_address', 'delivery_city', 'delivery_state', 'delivery_zip', 'delivery_date',
                       'delivery_time'),
            'classes': ('collapse',)
        }),
        ('Carrier', {
            'fields': ('carrier_name', 'carrier_phone', 'driver_name', 'driver_phone', 'bol_url')
        }),
        ('Timestamps', {
            'fields': ('picked_up_at', 'delivered_at', 'created_at', 'updated_at')
        }),
    )

    inlines = [WebhookDeliveryLogInline]


@admin.register(WebhookConfig)
class WebhookConfigAdmin(admin.ModelAdmin):
    list_display = ('name', 'webhook_url', 'enabled', 'updated_at')
    list_filter = ('enabled',)
    readonly_fields = ('created_at', 'updated_at')


@admin.register(WebhookDeliveryLog)
class WebhookDeliveryLogAdmin(admin.ModelAdmin):
    """Admin interface for WebhookDeliveryLog model."""

    list_display = ('id', 'load', 'status', 'status_code', 'retry_count', 'created_at', 'delivered_at')
    list_filter = ('status', 'created_at')
    search_fields = ('load__order_id', 'load__reference_id', 'load__vehicle_vin')
    readonly_fields = ('webhook_config', 'load', 'payload', 'status', 'status_code', 'response_body',
                       'error_message', 'retry_count', 'retried_by', 'delivered_at', 'created_at', 'updated_at')

    def has_add_permission(self, request):
        """Deliveries are only created by the dispatcher."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Delivery logs are the audit trail."""
        return False


@admin.register(CarrierEvent)
class CarrierEventAdmin(admin.ModelAdmin):
    """Admin interface for CarrierEvent model."""

    list_display = ('id', 'event_type', 'status', 'load', 'received_at', 'rejection_reason')
    list_filter = ('status', 'received_at')
    search_fields = ('id', 'event_type', 'rejection_reason')
    readonly_fields = ('event_type', 'raw_payload', 'source_headers', 'status', 'rejection_reason', 'load',
                       'received_at', 'processed_at', 'updated_at')

    def has_add_permission(self, request):
        """Disable manual event creation through admin."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Disable event deletion through admin."""
        return False


@admin.register(OrderSequence)
class OrderSequenceAdmin(admin.ModelAdmin):
    list_display = ('prefix', 'last_value', 'updated_at')
    search_fields = ('prefix',)
    readonly_fields = ('updated_at',)
