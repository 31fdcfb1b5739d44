"""
asgi.py -- Application assembly for the CRA Saint-Louis API.

The only module that reads process-wide settings for the web server. Everything
below receives them explicitly through create_app().

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
