"""
ASGI config for event_checkin project.

It exposes the ASGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/dev/howto/deployment/asgi/

"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.base")

django_application = get_asgi_application()

from socketio import ASGIApp  # noqa: E402

from event_checkin.realtime.socketio import sio  # noqa: E402

# Socket.IO wraps the Django app because it serves both Engine.IO long-polling
# and WebSocket upgrades. Mounted at `/ws/realtime/` to match the frontend.
application = ASGIApp(
    sio,
    other_asgi_app=django_application,
    socketio_path="ws/realtime",
)
