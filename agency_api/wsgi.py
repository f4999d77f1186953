# gunicorn -k gthread --threads 8 agency_api.wsgi:app
from agency_api import create_app

app = create_app()
