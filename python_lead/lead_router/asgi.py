"""
ASGI config for lead_router project.
"""
import os
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lead_router.settings')
application = get_asgi_application()
