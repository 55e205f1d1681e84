"""
ZoneAlert Backend
=================

Python package for the livestock boundary monitoring API.

HOW IT'S ORGANIZED:
------------------
- models/    = Request/response shapes (what does a reading look like?)
- services/  = Business rules (thresholds, alerts, counters, analytics)
- storage/   = Handles for the document store, realtime tree, push and auth
- routers/   = API endpoints
- main.py    = Puts it all together and starts the server

Author: ZoneAlert Team
"""

__version__ = "1.0.0"
