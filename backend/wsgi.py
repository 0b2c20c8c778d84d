# backend/wsgi.py
from inventario import create_app

app = create_app()
