import logging

from signrelay.api.app import create_app
from signrelay.config import load_settings

settings = load_settings()
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = create_app(settings)
