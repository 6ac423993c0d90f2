import os

from django.core.wsgi import get_wsgi_application

# the edge proxy runs the same entry point with DJANGO_SETTINGS_MODULE=sspl.settings.edge
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "sspl.settings.backend")

application = get_wsgi_application()
