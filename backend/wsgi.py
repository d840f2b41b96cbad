# backend/wsgi.py
from gstbill import create_app

app = create_app()
