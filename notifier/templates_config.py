"""
Shared Jinja2 templates configuration.

The only rendered asset is the background messaging service worker, which
needs the Firebase web config baked in at serve time.
"""

from pathlib import Path

from fastapi.templating import Jinja2Templates

from notifier.settings import settings

TEMPLATES_DIR = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

# Make settings-derived values available to all templates
templates.env.globals["firebase_config"] = settings.firebase_web_config
templates.env.globals["notification_icon"] = settings.push_notification_icon
templates.env.globals["default_title"] = settings.push_default_title
