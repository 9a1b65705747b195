"""
Celery application for background inventory tasks.

Reads CELERY_* keys from Django settings and discovers tasks.py modules
in installed apps.
"""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('uniform_store')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
