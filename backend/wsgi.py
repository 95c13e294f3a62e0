# backend/wsgi.py
from parking_app import create_app

app = create_app()
