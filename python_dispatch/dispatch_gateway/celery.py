"""
Celery configuration for Dispatch Gateway Service.
"""
import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dispatch_gateway.settings')

app = Celery('dispatch_gateway')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
