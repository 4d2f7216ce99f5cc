# backend/wsgi.py
from palletrack import create_app

app = create_app()
