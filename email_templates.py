"""
Email Template Factory

Maps a lifecycle event name plus metadata to ``{"subject", "html"}``.

Bodies are Jinja2 templates under templates/email/, one file per event,
each extending ``layout.html``. Autoescaping is on for ``.html`` files so
every interpolated value is escaped by the engine. Subjects are plain
text and never rendered as HTML.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, NamedTuple, Optional

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound, select_autoescape

from config import get_settings

APP_NAME = "RoleReady"
BRAND_COLOR = "#5693C1"
BRAND_DARK = "#4a80b0"

TEMPLATES_DIR = Path(__file__).parent / "templates" / "email"


def app_url(path: str = "") -> str:
    return get_settings().APP_URL.rstrip("/") + path


def signed(value: Any) -> str:
    """Format a score delta with its sign; anything non-numeric counts as 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = 0.0
    return f"{int(number):+d}" if number.is_integer() else f"{number:+.1f}"


class TemplateRegistry:
    """
    Loads and caches the Jinja2 email templates.

    Brand constants and ``app_url`` are environment globals, so the layout
    and the macros in ``macros.html`` see them without being passed in.
    """

    def __init__(self, templates_dir: Path = TEMPLATES_DIR):
        self.templates_dir = templates_dir
        self._cache: Dict[str, Template] = {}
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.globals.update(
            app_name=APP_NAME,
            brand_color=BRAND_COLOR,
            brand_dark=BRAND_DARK,
            app_url=app_url,
        )
        self.env.filters["signed"] = signed

    def get_template(self, name: str) -> Template:
        if name in self._cache:
            return self._cache[name]
        try:
            template = self.env.get_template(f"{name}.html")
        except TemplateNotFound as e:
            raise TemplateNotFound(f"Email template '{name}' not found in {self.templates_dir}") from e
        self._cache[name] = template
        return template

    def clear_cache(self):
        self._cache.clear()


registry = TemplateRegistry()


class EmailEvent(NamedTuple):
    template: str
    subject: Callable[[Dict[str, Any]], str]
    extra: Dict[str, Any] = {}


EVENTS: Dict[str, EmailEvent] = {
    "WELCOME_USER": EmailEvent("welcome_user", lambda m: f"Welcome to {APP_NAME}!"),
    "ROLE_SELECTED": EmailEvent(
        "role_selected", lambda m: f"You're preparing for {m.get('roleName') or 'a new role'}"
    ),
    "READINESS_FIRST": EmailEvent(
        "readiness_first", lambda m: f"Your first readiness score: {m.get('score') or 0}%"
    ),
    "READINESS_MAJOR_IMPROVEMENT": EmailEvent(
        "readiness_major_improvement",
        lambda m: f"Big progress: {m.get('oldScore') or 0}% → {m.get('newScore') or 0}%",
    ),
    "MENTOR_SKILL_VALIDATED": EmailEvent(
        "mentor_skill_validated", lambda m: f"{m.get('skillName') or 'Your skill'} has been validated"
    ),
    "MENTOR_SKILL_REJECTED": EmailEvent(
        "mentor_skill_rejected", lambda m: f"Feedback on your {m.get('skillName') or 'skill'} skill"
    ),
    "ROADMAP_CREATED": EmailEvent("roadmap_created", lambda m: "Your personalised roadmap is ready"),
    "USER_INACTIVE_7": EmailEvent("user_inactive", lambda m: f"We miss you at {APP_NAME}", {"days": 7}),
    "USER_INACTIVE_14": EmailEvent("user_inactive", lambda m: f"We miss you at {APP_NAME}", {"days": 14}),
    "USER_INACTIVE_30": EmailEvent("user_inactive", lambda m: f"We miss you at {APP_NAME}", {"days": 30}),
    "PLACEMENT_SEASON_ALERT": EmailEvent(
        "placement_season_alert", lambda m: f"{m.get('season') or 'Placement season'} is coming"
    ),
    "WEEKLY_PROGRESS_DIGEST": EmailEvent("weekly_progress_digest", lambda m: "Your weekly progress digest"),
    "ADMIN_BROADCAST": EmailEvent(
        "admin_broadcast", lambda m: m.get("subject") or f"A message from {APP_NAME}"
    ),
}


def get_template(event: str, metadata: Optional[Dict[str, Any]] = None, user_name: str = "there") -> Dict[str, str]:
    entry = EVENTS.get(event)
    if entry is None:
        raise ValueError(f"Unknown email event: {event}")
    metadata = metadata or {}
    subject = entry.subject(metadata)
    html = registry.get_template(entry.template).render(
        user_name=user_name or "there",
        metadata=metadata,
        subject=subject,
        year=datetime.now(timezone.utc).year,
        **entry.extra,
    )
    return {"subject": subject, "html": html}
