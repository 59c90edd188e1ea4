# backend/wsgi.py
from coffee_finance import create_app

app = create_app()
