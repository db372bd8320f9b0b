# backend/wsgi.py
from omni import create_app

app = create_app()
