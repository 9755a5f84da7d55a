# backend/wsgi.py
from backspace import create_app

app = create_app()
