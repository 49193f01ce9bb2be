# backend/wsgi.py
# FLASK_APP entrypoint: python -m flask --app wsgi <group> <command>
from jewelry_pos import create_app

app = create_app()
