"""Private-chat input for multi-step flows (template edits, button wizard, moderation wizards).

This router is registered first: a pending flow claims the user's next private
message before ordinary handlers see it. Commands are never consumed by a flow
(they fall through to their own handlers), except /cancel, which lives here.
"""
import logging
from html import escape
from typing import Optional

from aiogram import F, Router
from aiogram.enums import ChatType
from aiogram.filters import Command, Filter
from aiogram.types import Message

from bot.container import ServiceContainer
from bot.services.conversation_service import ConversationService, FlowKind, InputShape, PendingFlow
from bot.services.moderation_service import ModerationOutcome, normalize_reason
from bot.services.template_service import TemplateKind, is_valid_button_url
from bot.utils import messages
from bot.utils.keyboards import back_to_template, template_buttons_keyboard, warnings_keyboard, blacklist_keyboard
from bot.utils.permissions import resolve_target

logger = logging.getLogger(__name__)

BUTTON_LABEL_MAX = 64


class PendingFlowFilter(Filter):
    """Matches non-command messages from users with a pending flow."""

    def __init__(self, conversations: ConversationService):
        self.conversations = conversations

    async def __call__(self, message: Message) -> bool:
        if message.from_user is None or not self.conversations.has_pending(message.from_user.id):
            return False
        return not (message.text or "").startswith("/")


def _template_kind(flow: PendingFlow) -> TemplateKind:
    return TemplateKind.WELCOME if flow.kind.is_welcome else TemplateKind.GOODBYE


def extract_media(message: Message) -> Optional[tuple[str, str]]:
    """(media_type, file_id) of a photo/video/GIF/sticker message; largest photo size wins."""
    if message.photo:
        return "photo", message.photo[-1].file_id
    if message.animation:
        return "animation", message.animation.file_id
    if message.video:
        return "video", message.video.file_id
    if message.sticker:
        return "sticker", message.sticker.file_id
    return None


def create_conversation_handlers(container: ServiceContainer) -> Router:
    router = Router()
    router.message.filter(F.chat.type == ChatType.PRIVATE)

    ops = container.ops
    conversations = container.conversations
    templates = container.template_service
    moderation = container.moderation_service

    @router.message(Command("cancel"))
    async def cmd_cancel(message: Message):
        async with conversations.locked(message.from_user.id):
            cancelled = conversations.cancel(message.from_user.id)
        if cancelled:
            await ops.reply(message, "❎ Cancelled.")

    @router.message(PendingFlowFilter(conversations))
    async def on_flow_input(message: Message):
        user_id = message.from_user.id
        async with conversations.locked(user_id):
            flow = conversations.get(user_id)
            if flow is None:
                return
            shape = flow.kind.shape
            if shape == InputShape.MEDIA:
                await _on_media(message, flow)
            elif shape == InputShape.TARGET:
                await _on_target(message, flow)
            elif message.text:
                await _on_text(message, flow)

    async def _on_media(message: Message, flow: PendingFlow):
        media = extract_media(message)
        if media is None:
            # Anything else is ignored; the upload stays pending.
            return
        media_type, file_id = media
        kind = _template_kind(flow)
        await templates.set_media(kind, flow.group_id, media_type, file_id)
        conversations.clear(message.from_user.id)
        await ops.reply(
            message,
            f"✅ {kind.value.title()} media set ({media_type}).",
            reply_markup=back_to_template(kind, flow.group_id),
        )

    async def _on_text(message: Message, flow: PendingFlow):
        user_id = message.from_user.id
        text = message.text.strip()
        kind = flow.kind

        if kind in (FlowKind.EDIT_WELCOME_TEXT, FlowKind.EDIT_GOODBYE_TEXT):
            tkind = _template_kind(flow)
            await templates.set_text(tkind, flow.group_id, message.html_text)
            conversations.clear(user_id)
            await ops.reply(message, f"✅ {tkind.value.title()} text saved.", reply_markup=back_to_template(tkind, flow.group_id))
            return

        if kind in (FlowKind.ADD_WELCOME_BUTTON_TEXT, FlowKind.ADD_GOODBYE_BUTTON_TEXT):
            label = text[:BUTTON_LABEL_MAX]
            if not label:
                return
            conversations.advance(user_id, kind, label=label)
            await ops.reply(message, messages.button_url_prompt(label))
            return

        if kind in (FlowKind.ADD_WELCOME_BUTTON_URL, FlowKind.ADD_GOODBYE_BUTTON_URL):
            if not is_valid_button_url(text):
                await ops.reply(message, "❌ Invalid URL. It must start with http://, https:// or tg://\nTry again or send /cancel.")
                return
            tkind = _template_kind(flow)
            template = await templates.add_button(tkind, flow.group_id, flow.label, text)
            conversations.clear(user_id)
            await ops.reply(
                message,
                messages.template_buttons_message(tkind, template),
                reply_markup=template_buttons_keyboard(tkind, flow.group_id, template),
            )
            return

        await _finish_moderation(message, flow, normalize_reason(text))

    async def _on_target(message: Message, flow: PendingFlow):
        user_id = message.from_user.id
        target_id = await resolve_target(message, container.approval_service, message.text, ops=ops, chat_id=flow.group_id)
        if target_id is None:
            await ops.reply(
                message,
                "❌ I could not find that user. Send a numeric ID, an @username I have seen, "
                "or forward a message from them. Send /cancel to abort.",
            )
            return

        if await moderation.is_protected(flow.group_id, target_id):
            conversations.clear(user_id)
            await ops.reply(message, "⛔ Bot admins and group admins cannot be moderated.")
            return

        if flow.kind == FlowKind.AWAIT_BLACKLIST_USER and await moderation.is_blacklisted(flow.group_id, target_id):
            conversations.clear(user_id)
            await ops.reply(message, f"ℹ️ User <code>{target_id}</code> is already blacklisted.")
            return

        conversations.advance(user_id, flow.kind, target_id=target_id)
        await ops.reply(message, messages.reason_prompt(target_id))

    async def _finish_moderation(message: Message, flow: PendingFlow, reason: str):
        actor = message.from_user
        group_id = flow.group_id
        target_id = flow.target_id
        conversations.clear(actor.id)
        by = actor.mention_html()

        if flow.kind == FlowKind.AWAIT_BLACKLIST_REASON:
            outcome = await moderation.add_to_blacklist(group_id, target_id, actor.id, reason)
            if outcome == ModerationOutcome.ADDED:
                await ops.send_message(group_id, messages.group_blacklist_notice(target_id, reason, by))
                entries = await moderation.list_blacklist(group_id)
                await ops.reply(message, f"✅ User <code>{target_id}</code> blacklisted.", reply_markup=blacklist_keyboard(group_id, entries))
            else:
                await ops.reply(message, _outcome_text(outcome, target_id))
            return

        if flow.kind == FlowKind.AWAIT_WARN_REASON:
            result = await moderation.warn(group_id, target_id, actor.id, reason)
            if result.outcome in (ModerationOutcome.WARNED, ModerationOutcome.LIMIT_REACHED):
                limit = moderation.warn_limit
                await ops.send_message(group_id, messages.group_warning_notice(target_id, result.count, limit, reason, by))
                if result.outcome == ModerationOutcome.LIMIT_REACHED:
                    await ops.send_message(group_id, messages.group_limit_notice(target_id, limit, result.kicked))
                entries = await moderation.list_warnings(group_id)
                await ops.reply(
                    message,
                    f"✅ Warning {result.count}/{limit} given to <code>{target_id}</code>.",
                    reply_markup=warnings_keyboard(group_id, entries),
                )
            else:
                await ops.reply(message, _outcome_text(result.outcome, target_id))
            return

        outcome = await moderation.kick(group_id, target_id)
        if outcome == ModerationOutcome.KICKED:
            await ops.send_message(group_id, messages.group_kick_notice(target_id, reason, by))
            await ops.reply(message, f"✅ User <code>{target_id}</code> was kicked.\nReason: {escape(reason)}")
        else:
            await ops.reply(message, _outcome_text(outcome, target_id))

    return router


def _outcome_text(outcome: ModerationOutcome, target_id: int) -> str:
    texts = {
        ModerationOutcome.ALREADY_PRESENT: f"ℹ️ User <code>{target_id}</code> is already blacklisted.",
        ModerationOutcome.NOT_FOUND: f"ℹ️ No entry for user <code>{target_id}</code>.",
        ModerationOutcome.GROUP_NOT_FOUND: "❌ That group is not managed by this bot.",
        ModerationOutcome.PROTECTED: "⛔ Bot admins and group admins cannot be moderated.",
        ModerationOutcome.NO_PRIVILEGE: "❌ I need the \"Ban users\" admin right in that group.",
        ModerationOutcome.FAILED: "❌ The action failed. Check that the ID is valid and my admin rights.",
    }
    return texts.get(outcome, f"Done ({outcome.value}).")
