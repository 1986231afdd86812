"""Inline keyboards for the private-chat management menus."""
from typing import Optional, Sequence

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from bot.services.template_service import TemplateKind
from bot.utils.callback_data import (
    ApprovalAction,
    ApprovalCb,
    GroupMenu,
    GroupMenuCb,
    GroupsListCb,
    MemberAction,
    MemberActionCb,
    PickGroupCb,
    TemplateAction,
    TemplateCb,
    ToggleSettingCb,
)
from bot.utils.messages import SETTING_LABELS, on_off
from database.models import BlacklistEntry, Group, WarningEntry

# Telegram rejects keyboards past 100 buttons; keep lists short.
MAX_LIST_ROWS = 30


def _button(text: str, cb) -> InlineKeyboardButton:
    return InlineKeyboardButton(text=text, callback_data=cb.pack())


def _title(group: Group) -> str:
    return group.title or str(group.group_id)


def request_approval_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[[_button("📝 Request Approval", ApprovalCb(action=ApprovalAction.REQUEST))]]
    )


def approval_decision_keyboard(user_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[[
            _button("✅ Approve", ApprovalCb(action=ApprovalAction.APPROVE, user_id=user_id)),
            _button("❌ Deny", ApprovalCb(action=ApprovalAction.DENY, user_id=user_id)),
        ]]
    )


def groups_keyboard(groups: Sequence[Group]) -> Optional[InlineKeyboardMarkup]:
    if not groups:
        return None
    rows = [
        [_button(_title(g), GroupMenuCb(menu=GroupMenu.MANAGE, group_id=int(g.group_id)))]
        for g in groups[:MAX_LIST_ROWS]
    ]
    return InlineKeyboardMarkup(inline_keyboard=rows)


def pick_group_keyboard(kind: TemplateKind, groups: Sequence[Group]) -> Optional[InlineKeyboardMarkup]:
    if not groups:
        return None
    rows = [[_button(_title(g), PickGroupCb(kind=kind, group_id=int(g.group_id)))] for g in groups[:MAX_LIST_ROWS]]
    return InlineKeyboardMarkup(inline_keyboard=rows)


def settings_pick_keyboard(groups: Sequence[Group]) -> Optional[InlineKeyboardMarkup]:
    if not groups:
        return None
    rows = [
        [_button(_title(g), GroupMenuCb(menu=GroupMenu.SETTINGS, group_id=int(g.group_id)))]
        for g in groups[:MAX_LIST_ROWS]
    ]
    return InlineKeyboardMarkup(inline_keyboard=rows)


def group_manage_keyboard(group_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                _button("👋 Welcome", TemplateCb(kind=TemplateKind.WELCOME, action=TemplateAction.SETTINGS, group_id=group_id)),
                _button("🚪 Goodbye", TemplateCb(kind=TemplateKind.GOODBYE, action=TemplateAction.SETTINGS, group_id=group_id)),
            ],
            [
                _button("⚫️ Blacklist", GroupMenuCb(menu=GroupMenu.BLACKLIST, group_id=group_id)),
                _button("⚠️ Warnings", GroupMenuCb(menu=GroupMenu.WARNINGS, group_id=group_id)),
            ],
            [
                _button("👤 Members", GroupMenuCb(menu=GroupMenu.MEMBERS, group_id=group_id)),
                _button("🛠 Settings", GroupMenuCb(menu=GroupMenu.SETTINGS, group_id=group_id)),
            ],
            [_button("« Back to groups", GroupsListCb())],
        ]
    )


def back_to_group(group_id: int) -> list[InlineKeyboardButton]:
    return [_button("« Back", GroupMenuCb(menu=GroupMenu.MANAGE, group_id=group_id))]


def group_settings_keyboard(group: Group) -> InlineKeyboardMarkup:
    group_id = int(group.group_id)
    rows = [
        [_button(f"{on_off(getattr(group, field))} {label}", ToggleSettingCb(group_id=group_id, setting=field))]
        for field, label in SETTING_LABELS.items()
    ]
    rows.append(back_to_group(group_id))
    return InlineKeyboardMarkup(inline_keyboard=rows)


def blacklist_keyboard(group_id: int, entries: Sequence[BlacklistEntry]) -> InlineKeyboardMarkup:
    rows = [
        [_button(f"🆔 {e.user_id}", MemberActionCb(action=MemberAction.BLACKLIST_INFO, group_id=group_id, user_id=int(e.user_id)))]
        for e in entries[:MAX_LIST_ROWS]
    ]
    rows.append([_button("➕ Add to blacklist", MemberActionCb(action=MemberAction.ADD_BLACKLIST, group_id=group_id))])
    rows.append(back_to_group(group_id))
    return InlineKeyboardMarkup(inline_keyboard=rows)


def warnings_keyboard(group_id: int, entries: Sequence[WarningEntry]) -> InlineKeyboardMarkup:
    rows = [
        [_button(f"🆔 {e.user_id} ({e.count})", MemberActionCb(action=MemberAction.WARNING_INFO, group_id=group_id, user_id=int(e.user_id)))]
        for e in entries[:MAX_LIST_ROWS]
    ]
    rows.append([_button("➕ Warn a user", MemberActionCb(action=MemberAction.ADD_WARNING, group_id=group_id))])
    rows.append(back_to_group(group_id))
    return InlineKeyboardMarkup(inline_keyboard=rows)


def blacklist_info_keyboard(group_id: int, user_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [_button("✅ Remove from blacklist", MemberActionCb(action=MemberAction.UNBLACKLIST, group_id=group_id, user_id=user_id))],
            [_button("« Back", GroupMenuCb(menu=GroupMenu.BLACKLIST, group_id=group_id))],
        ]
    )


def warning_info_keyboard(group_id: int, user_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [_button("➖ Remove one warning", MemberActionCb(action=MemberAction.UNWARN, group_id=group_id, user_id=user_id))],
            [_button("⚫️ Blacklist user", MemberActionCb(action=MemberAction.BLACKLIST_FROM_WARNING, group_id=group_id, user_id=user_id))],
            [_button("« Back", GroupMenuCb(menu=GroupMenu.WARNINGS, group_id=group_id))],
        ]
    )


def members_keyboard(group_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [_button("👢 Kick a member", MemberActionCb(action=MemberAction.KICK, group_id=group_id))],
            [
                _button("⚫️ Blacklist", MemberActionCb(action=MemberAction.ADD_BLACKLIST, group_id=group_id)),
                _button("⚠️ Warn", MemberActionCb(action=MemberAction.ADD_WARNING, group_id=group_id)),
            ],
            [_button("📋 View admins", GroupMenuCb(menu=GroupMenu.VIEW_ALL, group_id=group_id))],
            back_to_group(group_id),
        ]
    )


def template_settings_keyboard(kind: TemplateKind, group_id: int, template, enabled: bool) -> InlineKeyboardMarkup:
    def cb(action: TemplateAction) -> TemplateCb:
        return TemplateCb(kind=kind, action=action, group_id=group_id)

    rows = [
        [_button(f"{on_off(enabled)} Enabled", cb(TemplateAction.TOGGLE))],
        [_button("✏️ Edit Text", cb(TemplateAction.EDIT_TEXT)), _button("🖼 Set Media", cb(TemplateAction.SET_MEDIA))],
    ]
    if template.has_media:
        rows.append([
            _button("🗑 Remove Media", cb(TemplateAction.REMOVE_MEDIA)),
            _button(f"{on_off(template.has_caption)} Caption", cb(TemplateAction.TOGGLE_CAPTION)),
        ])
    rows.append([
        _button(f"{on_off(template.show_tags)} Tags", cb(TemplateAction.TOGGLE_TAGS)),
        _button(f"{on_off(template.show_buttons)} Buttons", cb(TemplateAction.TOGGLE_BUTTONS)),
    ])
    rows.append([_button("🔘 Manage Buttons", cb(TemplateAction.BUTTONS)), _button("👁 Preview", cb(TemplateAction.PREVIEW))])
    rows.append(back_to_group(group_id))
    return InlineKeyboardMarkup(inline_keyboard=rows)


def template_buttons_keyboard(kind: TemplateKind, group_id: int, template) -> InlineKeyboardMarkup:
    rows = [
        [_button(f"🗑 {b['text']}", TemplateCb(kind=kind, action=TemplateAction.DELETE_BUTTON, group_id=group_id, index=i))]
        for i, b in enumerate(template.buttons[:MAX_LIST_ROWS])
    ]
    rows.append([_button("➕ Add Button", TemplateCb(kind=kind, action=TemplateAction.ADD_BUTTON, group_id=group_id))])
    rows.append([_button("« Back", TemplateCb(kind=kind, action=TemplateAction.SETTINGS, group_id=group_id))])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def back_to_template(kind: TemplateKind, group_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[[_button("« Back", TemplateCb(kind=kind, action=TemplateAction.SETTINGS, group_id=group_id))]]
    )


def add_group_keyboard(bot_username: str, group_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text="➕ Add bot to group", url=f"https://t.me/{bot_username}?startgroup={group_id}")]]
    )
