# backend/wsgi.py
from mypos import create_app

app = create_app()
