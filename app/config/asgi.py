"""
ASGI config for the course payments service.

Exposes the ASGI callable as a module-level variable named `application`.
Uvicorn serves the API through this entry point; webhook and status
endpoints are plain HTTP so no protocol router is needed.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

# Set the default Django settings module for the ASGI application
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
