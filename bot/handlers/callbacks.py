"""Inline-button handlers for the approval flow and the private-chat group menus."""
import logging
from typing import Optional

from aiogram import F, Router
from aiogram.types import CallbackQuery, InlineKeyboardMarkup

from bot.container import ServiceContainer
from bot.services.approval_service import ApprovalOutcome, RequestOutcome
from bot.services.conversation_service import FlowKind
from bot.services.moderation_service import ModerationOutcome
from bot.services.template_renderer import MemberInfo
from bot.services.template_service import TemplateKind
from bot.utils import messages
from bot.utils import keyboards
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
from bot.utils.decorators import approved_only
from bot.utils.permissions import can_manage_group
from database.models import GROUP_SETTING_FIELDS

logger = logging.getLogger(__name__)

TEMPLATE_FLOWS = {
    (TemplateKind.WELCOME, TemplateAction.EDIT_TEXT): FlowKind.EDIT_WELCOME_TEXT,
    (TemplateKind.GOODBYE, TemplateAction.EDIT_TEXT): FlowKind.EDIT_GOODBYE_TEXT,
    (TemplateKind.WELCOME, TemplateAction.SET_MEDIA): FlowKind.UPLOAD_WELCOME_MEDIA,
    (TemplateKind.GOODBYE, TemplateAction.SET_MEDIA): FlowKind.UPLOAD_GOODBYE_MEDIA,
    (TemplateKind.WELCOME, TemplateAction.ADD_BUTTON): FlowKind.ADD_WELCOME_BUTTON_TEXT,
    (TemplateKind.GOODBYE, TemplateAction.ADD_BUTTON): FlowKind.ADD_GOODBYE_BUTTON_TEXT,
}

MEMBER_FLOWS = {
    MemberAction.ADD_BLACKLIST: (FlowKind.AWAIT_BLACKLIST_USER, "blacklist"),
    MemberAction.ADD_WARNING: (FlowKind.AWAIT_WARN_USER, "warn"),
    MemberAction.KICK: (FlowKind.AWAIT_KICK_USER, "kick"),
}

TEMPLATE_FLAGS = {
    TemplateAction.TOGGLE_TAGS: "show_tags",
    TemplateAction.TOGGLE_BUTTONS: "show_buttons",
    TemplateAction.TOGGLE_CAPTION: "has_caption",
}


def create_callback_handlers(container: ServiceContainer) -> Router:
    router = Router()

    ops = container.ops
    approval = container.approval_service
    groups = container.group_service
    moderation = container.moderation_service
    templates = container.template_service
    conversations = container.conversations

    async def _show(callback: CallbackQuery, text: str, markup: Optional[InlineKeyboardMarkup] = None):
        message = callback.message
        if message is None:
            await ops.send_message(callback.from_user.id, text, reply_markup=markup)
            return
        await ops.show(message.chat.id, message.message_id, text, markup)

    async def _guard(callback: CallbackQuery, group_id: int) -> bool:
        if await can_manage_group(groups, approval, group_id, callback.from_user.id):
            return True
        await ops.answer_callback(callback.id, "⛔ You cannot manage this group.", show_alert=True)
        return False

    async def _start_flow(callback: CallbackQuery, kind: FlowKind, group_id: int, prompt: str):
        user_id = callback.from_user.id
        async with conversations.locked(user_id):
            conversations.start(user_id, kind, group_id)
        await ops.answer_callback(callback.id)
        await ops.send_message(user_id, prompt)

    # ========== APPROVAL ==========

    @router.callback_query(ApprovalCb.filter(F.action == ApprovalAction.REQUEST))
    async def on_request_approval(callback: CallbackQuery):
        outcome = await approval.request_approval(callback.from_user)
        if outcome == RequestOutcome.ALREADY_APPROVED:
            await ops.answer_callback(callback.id, "✅ You are already approved.", show_alert=True)
            return
        user = await approval.get_user(callback.from_user.id)
        delivered = await ops.notify_many(
            await approval.admin_ids(),
            messages.approval_request_admin_message(user),
            reply_markup=keyboards.approval_decision_keyboard(callback.from_user.id),
        )
        logger.info(f"Approval request of {callback.from_user.id} delivered to {delivered} admin(s)")
        await ops.answer_callback(callback.id, "📨 Request sent.")
        await _show(callback, "📨 Your access request was sent to the admins. You will be notified once it is reviewed.")

    @router.callback_query(ApprovalCb.filter(F.action.in_({ApprovalAction.APPROVE, ApprovalAction.DENY})))
    @approved_only(container, admin=True)
    async def on_approval_decision(callback: CallbackQuery, callback_data: ApprovalCb):
        user_id = callback_data.user_id
        if callback_data.action == ApprovalAction.APPROVE:
            outcome = await approval.approve(user_id, callback.from_user.id)
        else:
            outcome = await approval.deny(user_id, callback.from_user.id)

        if outcome == ApprovalOutcome.APPROVED:
            await ops.send_message(user_id, "✅ Your access request was approved! Send /start to begin.")
            result = f"✅ User <code>{user_id}</code> approved by {callback.from_user.mention_html()}."
        elif outcome == ApprovalOutcome.DENIED:
            await ops.send_message(user_id, "❌ Your access request was declined.")
            result = f"🚫 User <code>{user_id}</code> denied by {callback.from_user.mention_html()}."
        elif outcome == ApprovalOutcome.ALREADY_APPROVED:
            result = f"ℹ️ User <code>{user_id}</code> is already approved."
        else:
            result = f"❌ User <code>{user_id}</code> not found."
        await ops.answer_callback(callback.id)
        await _show(callback, result)

    # ========== GROUP MENUS ==========

    @router.callback_query(GroupsListCb.filter())
    @approved_only(container)
    async def on_groups_list(callback: CallbackQuery):
        user_id = callback.from_user.id
        manageable = await groups.list_manageable(user_id, include_all=await approval.is_bot_admin(user_id))
        await ops.answer_callback(callback.id)
        await _show(callback, messages.groups_list_message(manageable), keyboards.groups_keyboard(manageable))

    @router.callback_query(GroupMenuCb.filter())
    @approved_only(container)
    async def on_group_menu(callback: CallbackQuery, callback_data: GroupMenuCb):
        group_id = callback_data.group_id
        if not await _guard(callback, group_id):
            return
        group = await groups.get_group(group_id)
        await ops.answer_callback(callback.id)
        menu = callback_data.menu

        if menu == GroupMenu.MANAGE:
            blacklist = await moderation.list_blacklist(group_id)
            warnings = await moderation.list_warnings(group_id)
            await _show(
                callback,
                messages.group_manage_message(group, len(blacklist), len(warnings)),
                keyboards.group_manage_keyboard(group_id),
            )
        elif menu == GroupMenu.SETTINGS:
            await _show(callback, messages.group_settings_message(group), keyboards.group_settings_keyboard(group))
        elif menu == GroupMenu.BLACKLIST:
            entries = await moderation.list_blacklist(group_id)
            await _show(callback, messages.blacklist_message(group, entries), keyboards.blacklist_keyboard(group_id, entries))
        elif menu == GroupMenu.WARNINGS:
            entries = await moderation.list_warnings(group_id)
            await _show(
                callback,
                messages.warnings_message(group, entries, moderation.warn_limit),
                keyboards.warnings_keyboard(group_id, entries),
            )
        else:
            admins = await ops.get_chat_administrators(group_id)
            count = await ops.get_member_count(group_id)
            admin_count = bot_is_admin = None
            if admins is not None:
                admin_count = len(admins)
                bot_is_admin = any(member.user.id == ops.bot_id for member in admins)
            lines = []
            if menu == GroupMenu.VIEW_ALL:
                lines = [
                    f"• {member.user.mention_html()} - {getattr(member.status, 'value', member.status)}"
                    for member in admins or []
                    if not member.user.is_bot
                ]
            await _show(
                callback,
                messages.members_message(group, count, admin_count, bot_is_admin, lines),
                keyboards.members_keyboard(group_id),
            )

    @router.callback_query(ToggleSettingCb.filter())
    @approved_only(container)
    async def on_toggle_setting(callback: CallbackQuery, callback_data: ToggleSettingCb):
        group_id = callback_data.group_id
        if not await _guard(callback, group_id):
            return
        if callback_data.setting not in GROUP_SETTING_FIELDS:
            await ops.answer_callback(callback.id, "Unrecognized action")
            return
        new_value = await groups.toggle_setting(group_id, callback_data.setting)
        label = messages.SETTING_LABELS[callback_data.setting]
        await ops.answer_callback(callback.id, f"{label}: {'on' if new_value else 'off'}")
        group = await groups.get_group(group_id)
        await _show(callback, messages.group_settings_message(group), keyboards.group_settings_keyboard(group))

    # ========== MEMBER ACTIONS ==========

    @router.callback_query(MemberActionCb.filter())
    @approved_only(container)
    async def on_member_action(callback: CallbackQuery, callback_data: MemberActionCb):
        group_id = callback_data.group_id
        if not await _guard(callback, group_id):
            return
        action = callback_data.action
        user_id = callback_data.user_id

        if action in MEMBER_FLOWS:
            flow_kind, verb = MEMBER_FLOWS[action]
            await _start_flow(callback, flow_kind, group_id, messages.target_prompt(verb))
            return

        if user_id is None:
            await ops.answer_callback(callback.id, "Unrecognized action")
            return

        if action == MemberAction.BLACKLIST_INFO:
            entry = await moderation.get_blacklist_entry(group_id, user_id)
            if entry is None:
                await ops.answer_callback(callback.id, "User is no longer blacklisted.")
                return
            await ops.answer_callback(callback.id)
            await _show(callback, messages.blacklist_info_message(entry), keyboards.blacklist_info_keyboard(group_id, user_id))

        elif action == MemberAction.WARNING_INFO:
            entry = await moderation.get_warning(group_id, user_id)
            if entry is None:
                await ops.answer_callback(callback.id, "User has no warnings.")
                return
            await ops.answer_callback(callback.id)
            await _show(
                callback,
                messages.warning_info_message(entry, moderation.warn_limit),
                keyboards.warning_info_keyboard(group_id, user_id),
            )

        elif action == MemberAction.UNBLACKLIST:
            outcome = await moderation.remove_from_blacklist(group_id, user_id)
            await ops.answer_callback(
                callback.id,
                "✅ Removed from blacklist." if outcome == ModerationOutcome.REMOVED else "User was not blacklisted.",
            )
            group = await groups.get_group(group_id)
            entries = await moderation.list_blacklist(group_id)
            await _show(callback, messages.blacklist_message(group, entries), keyboards.blacklist_keyboard(group_id, entries))

        elif action == MemberAction.UNWARN:
            result = await moderation.unwarn(group_id, user_id)
            if result.outcome == ModerationOutcome.REMOVED and result.count > 0:
                await ops.answer_callback(callback.id, f"Warnings: {result.count}/{moderation.warn_limit}")
                entry = await moderation.get_warning(group_id, user_id)
                await _show(
                    callback,
                    messages.warning_info_message(entry, moderation.warn_limit),
                    keyboards.warning_info_keyboard(group_id, user_id),
                )
                return
            await ops.answer_callback(callback.id, "✅ All warnings cleared." if result.outcome == ModerationOutcome.REMOVED else "User has no warnings.")
            group = await groups.get_group(group_id)
            entries = await moderation.list_warnings(group_id)
            await _show(
                callback,
                messages.warnings_message(group, entries, moderation.warn_limit),
                keyboards.warnings_keyboard(group_id, entries),
            )

        else:
            outcome = await moderation.blacklist_from_warning(group_id, user_id, callback.from_user.id)
            texts = {
                ModerationOutcome.ADDED: "⚫️ User moved to the blacklist.",
                ModerationOutcome.ALREADY_PRESENT: "User was already blacklisted; warnings cleared.",
                ModerationOutcome.NOT_FOUND: "User has no warnings.",
            }
            await ops.answer_callback(callback.id, texts.get(outcome, "Done."))
            group = await groups.get_group(group_id)
            entries = await moderation.list_blacklist(group_id)
            await _show(callback, messages.blacklist_message(group, entries), keyboards.blacklist_keyboard(group_id, entries))

    # ========== TEMPLATES ==========

    async def _show_template_settings(callback: CallbackQuery, kind: TemplateKind, group_id: int):
        template = await templates.get_or_create(kind, group_id)
        group = await groups.get_group(group_id)
        enabled = bool(template.enabled)
        await _show(
            callback,
            messages.template_settings_message(kind, group, template, enabled),
            keyboards.template_settings_keyboard(kind, group_id, template, enabled),
        )

    @router.callback_query(PickGroupCb.filter())
    @approved_only(container)
    async def on_pick_group(callback: CallbackQuery, callback_data: PickGroupCb):
        if not await _guard(callback, callback_data.group_id):
            return
        await ops.answer_callback(callback.id)
        await _show_template_settings(callback, callback_data.kind, callback_data.group_id)

    @router.callback_query(TemplateCb.filter())
    @approved_only(container)
    async def on_template_action(callback: CallbackQuery, callback_data: TemplateCb):
        kind = callback_data.kind
        group_id = callback_data.group_id
        action = callback_data.action
        if not await _guard(callback, group_id):
            return

        if (kind, action) in TEMPLATE_FLOWS:
            if action == TemplateAction.EDIT_TEXT:
                prompt = messages.edit_text_prompt(kind)
            elif action == TemplateAction.SET_MEDIA:
                prompt = messages.media_prompt(kind)
            else:
                prompt = messages.button_text_prompt()
            await _start_flow(callback, TEMPLATE_FLOWS[(kind, action)], group_id, prompt)
            return

        if action == TemplateAction.SETTINGS:
            await ops.answer_callback(callback.id)
        elif action in TEMPLATE_FLAGS:
            new_value = await templates.toggle(kind, group_id, TEMPLATE_FLAGS[action])
            await ops.answer_callback(callback.id, "On" if new_value else "Off")
        elif action == TemplateAction.TOGGLE:
            new_value = await templates.toggle_enabled(kind, group_id)
            await ops.answer_callback(callback.id, f"{kind.value.title()} {'enabled' if new_value else 'disabled'}")
        elif action == TemplateAction.REMOVE_MEDIA:
            await templates.remove_media(kind, group_id)
            await ops.answer_callback(callback.id, "Media removed.")
        elif action in (TemplateAction.BUTTONS, TemplateAction.DELETE_BUTTON):
            if action == TemplateAction.DELETE_BUTTON:
                deleted = callback_data.index is not None and await templates.delete_button(kind, group_id, callback_data.index)
                await ops.answer_callback(callback.id, "Button deleted." if deleted else "Button not found.")
            else:
                await ops.answer_callback(callback.id)
            template = await templates.get_or_create(kind, group_id)
            await _show(
                callback,
                messages.template_buttons_message(kind, template),
                keyboards.template_buttons_keyboard(kind, group_id, template),
            )
            return
        else:
            await ops.answer_callback(callback.id, "Sending preview...")
            template = await templates.get_or_create(kind, group_id)
            group = await groups.get_group(group_id)
            sent = await container.template_renderer.send(
                template,
                group_id,
                group.title,
                MemberInfo.from_user(callback.from_user),
                deliver_to=callback.from_user.id,
            )
            if not sent:
                await ops.send_message(callback.from_user.id, "❌ Preview failed. The media may no longer be available.")
            template = await templates.get_or_create(kind, group_id)
            enabled = bool(template.enabled)
            await ops.send_message(
                callback.from_user.id,
                messages.template_settings_message(kind, group, template, enabled),
                reply_markup=keyboards.template_settings_keyboard(kind, group_id, template, enabled),
            )
            return

        await _show_template_settings(callback, kind, group_id)

    # ========== FALLBACK ==========

    @router.callback_query()
    async def on_unknown(callback: CallbackQuery):
        logger.info(f"Unrecognized callback from {callback.from_user.id}: {callback.data!r}")
        await ops.answer_callback(callback.id, "Unrecognized action")

    return router
