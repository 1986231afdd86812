"""Typed inline-button payloads.

Every button the bot emits carries one of these. aiogram packs them as
`prefix:field:field` strings and the routers filter on the class, so a handler
always receives parsed, typed values.
"""
from enum import Enum
from typing import Optional

from aiogram.filters.callback_data import CallbackData

from bot.services.template_service import TemplateKind


class ApprovalAction(str, Enum):
    REQUEST = "request"
    APPROVE = "approve"
    DENY = "deny"


class ApprovalCb(CallbackData, prefix="appr"):
    action: ApprovalAction
    user_id: int = 0


class GroupsListCb(CallbackData, prefix="groups"):
    pass


class GroupMenu(str, Enum):
    MANAGE = "manage"
    MEMBERS = "members"
    BLACKLIST = "blacklist"
    WARNINGS = "warnings"
    SETTINGS = "settings"
    VIEW_ALL = "view_all"


class GroupMenuCb(CallbackData, prefix="grp"):
    menu: GroupMenu
    group_id: int


class ToggleSettingCb(CallbackData, prefix="gset"):
    group_id: int
    setting: str


class MemberAction(str, Enum):
    ADD_BLACKLIST = "add_bl"
    ADD_WARNING = "add_warn"
    KICK = "kick"
    BLACKLIST_INFO = "bl_info"
    WARNING_INFO = "warn_info"
    UNBLACKLIST = "unbl"
    UNWARN = "unwarn"
    BLACKLIST_FROM_WARNING = "bl_from_warn"


class MemberActionCb(CallbackData, prefix="mem"):
    action: MemberAction
    group_id: int
    user_id: Optional[int] = None


class TemplateAction(str, Enum):
    SETTINGS = "settings"
    EDIT_TEXT = "edit_text"
    SET_MEDIA = "set_media"
    REMOVE_MEDIA = "remove_media"
    BUTTONS = "buttons"
    ADD_BUTTON = "add_button"
    DELETE_BUTTON = "del_button"
    TOGGLE_TAGS = "toggle_tags"
    TOGGLE_BUTTONS = "toggle_buttons"
    TOGGLE_CAPTION = "toggle_caption"
    TOGGLE = "toggle"
    PREVIEW = "preview"


class TemplateCb(CallbackData, prefix="tpl"):
    kind: TemplateKind
    action: TemplateAction
    group_id: int
    index: Optional[int] = None


class PickGroupCb(CallbackData, prefix="pick"):
    """Group chosen from the /setwelcome or /setgoodbye list."""

    kind: TemplateKind
    group_id: int
