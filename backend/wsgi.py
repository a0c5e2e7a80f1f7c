# backend/wsgi.py
from posapi import create_app

app = create_app()
