"""Template service - per-group welcome and goodbye message definitions."""
import logging
from enum import Enum
from typing import Optional, Union
from sqlalchemy.exc import IntegrityError

from database.db import Database
from database.models import Group, WelcomeTemplate, GoodbyeTemplate, MEDIA_TYPES

logger = logging.getLogger(__name__)

GreetingTemplate = Union[WelcomeTemplate, GoodbyeTemplate]

VALID_BUTTON_SCHEMES = ("http://", "https://", "tg://")


class TemplateKind(str, Enum):
    WELCOME = "welcome"
    GOODBYE = "goodbye"

    @property
    def model(self):
        return WelcomeTemplate if self is TemplateKind.WELCOME else GoodbyeTemplate

    @property
    def group_flag(self) -> str:
        """Group column mirrored by the template's enabled switch."""
        return f"{self.value}_enabled"


def is_valid_button_url(url: str) -> bool:
    return (url or "").strip().lower().startswith(VALID_BUTTON_SCHEMES)


class TemplateService:
    """
    Lazily created welcome/goodbye templates, one of each per group.

    Supported placeholders (see template_renderer):
        {user}, {userid}, {username}, {name}, {fullname}, {group}, {membercount}
    """

    def __init__(self, db: Database):
        self.db = db

    async def get(self, kind: TemplateKind, group_id: int) -> Optional[GreetingTemplate]:
        async with self.db.session() as session:
            return await session.get(kind.model, group_id)

    async def get_or_create(self, kind: TemplateKind, group_id: int) -> GreetingTemplate:
        """
        Fetch the template, creating it with default text if missing.

        A new template starts enabled, and the group's welcome/goodbye flag is
        switched on with it.
        """
        try:
            async with self.db.session() as session:
                template = await session.get(kind.model, group_id)
                if template is None:
                    template = kind.model(group_id=group_id)
                    session.add(template)
                    await session.flush()
                    await session.refresh(template)
                    group = await session.get(Group, group_id)
                    if group is not None:
                        setattr(group, kind.group_flag, bool(template.enabled))
                    logger.info(f"Created default {kind.value} template for group {group_id}")
                return template
        except IntegrityError:
            async with self.db.session() as session:
                return await session.get(kind.model, group_id)

    async def _update(self, kind: TemplateKind, group_id: int, **values) -> GreetingTemplate:
        await self.get_or_create(kind, group_id)
        async with self.db.session() as session:
            template = await session.get(kind.model, group_id)
            for key, value in values.items():
                setattr(template, key, value)
            return template

    async def set_text(self, kind: TemplateKind, group_id: int, text: str) -> GreetingTemplate:
        logger.info(f"{kind.value} text updated for group {group_id}")
        return await self._update(kind, group_id, text=text)

    async def set_media(self, kind: TemplateKind, group_id: int, media_type: str, file_id: str) -> GreetingTemplate:
        if media_type not in MEDIA_TYPES or media_type == "none":
            raise ValueError(f"Unsupported media type: {media_type}")
        logger.info(f"{kind.value} media set to {media_type} for group {group_id}")
        return await self._update(kind, group_id, media_type=media_type, media_file_id=file_id)

    async def remove_media(self, kind: TemplateKind, group_id: int) -> GreetingTemplate:
        return await self._update(kind, group_id, media_type="none", media_file_id=None)

    async def add_button(self, kind: TemplateKind, group_id: int, text: str, url: str) -> GreetingTemplate:
        """Append a URL button. Raises ValueError on an unsupported scheme."""
        if not is_valid_button_url(url):
            raise ValueError("Button URL must start with http://, https:// or tg://")
        template = await self.get_or_create(kind, group_id)
        buttons = template.buttons + [{"text": text.strip(), "url": url.strip()}]
        return await self._update(kind, group_id, buttons=buttons)

    async def delete_button(self, kind: TemplateKind, group_id: int, index: int) -> bool:
        template = await self.get_or_create(kind, group_id)
        buttons = template.buttons
        if index < 0 or index >= len(buttons):
            return False
        del buttons[index]
        await self._update(kind, group_id, buttons=buttons)
        return True

    async def toggle(self, kind: TemplateKind, group_id: int, field: str) -> bool:
        """Flip show_tags / show_buttons / has_caption. Returns the new value."""
        if field not in ("show_tags", "show_buttons", "has_caption"):
            raise ValueError(f"Unknown template flag: {field}")
        template = await self.get_or_create(kind, group_id)
        new_value = not bool(getattr(template, field))
        await self._update(kind, group_id, **{field: new_value})
        return new_value

    async def toggle_enabled(self, kind: TemplateKind, group_id: int) -> bool:
        """Flip the template switch and mirror it onto the group's welcome/goodbye flag."""
        await self.get_or_create(kind, group_id)
        async with self.db.session() as session:
            template = await session.get(kind.model, group_id)
            new_value = not template.enabled
            template.enabled = new_value
            group = await session.get(Group, group_id)
            if group is not None:
                setattr(group, kind.group_flag, new_value)
        logger.info(f"{kind.value} messages {'enabled' if new_value else 'disabled'} for group {group_id}")
        return new_value

    async def active_template(self, kind: TemplateKind, group: Group) -> Optional[GreetingTemplate]:
        """The template to send on a membership event, or None when there is none or it is switched off."""
        template = await self.get(kind, group.group_id)
        if template is None or not template.enabled:
            return None
        return template
