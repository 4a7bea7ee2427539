# backend/wsgi.py
from disktrack import create_app

app = create_app()
