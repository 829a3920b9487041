"""
WSGI config for the etims_pos project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'etims_pos.config.settings')

application = get_wsgi_application()
