# backend/wsgi.py
from kgl import create_app

app = create_app()
