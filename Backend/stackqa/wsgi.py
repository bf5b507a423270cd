"""WSGI entry point (`gunicorn stackqa.wsgi`)."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "stackqa.settings")

application = get_wsgi_application()
