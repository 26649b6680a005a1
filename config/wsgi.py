"""
WSGI config for event_checkin project.

Exposes the module-level ``application`` used by Django's development server
and WSGI deployments. Live Socket.IO screens need the ASGI entry point in
``config.asgi``; the SSE stream works under both.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.base")

application = get_wsgi_application()
