# backend/wsgi.py
from aurum import create_app

app = create_app()
