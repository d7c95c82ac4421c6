"""
WSGI config for konekte_project project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'konekte_project.settings')

application = get_wsgi_application()
