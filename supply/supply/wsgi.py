"""
WSGI config for the supply project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "supply.settings")

application = get_wsgi_application()
