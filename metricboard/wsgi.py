"""WSGI entry point for metricboard.

Requests are served concurrently by the WSGI server's worker threads; the
aggregation engines built at startup are shared between them.
"""

from __future__ import annotations

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "metricboard.settings")

application = get_wsgi_application()
