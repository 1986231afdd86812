"""Message texts for the bot. All texts are HTML; dynamic values are escaped here."""
from html import escape
from typing import Optional, Sequence

from bot.services.moderation_service import DEFAULT_REASON
from bot.services.template_service import TemplateKind
from database.models import BlacklistEntry, Group, User, WarningEntry

SETTING_LABELS = {
    "anti_spam": "Anti Spam",
    "anti_link": "Anti Link",
    "anti_forward": "Anti Forward",
    "restrict_new_members": "Restrict New Members",
    "auto_delete_commands": "Auto-delete Commands",
    "admin_only_commands": "Admin-only Commands",
}

PLACEHOLDER_HELP = (
    "Available tags:\n"
    "<code>{user}</code> - mention of the member\n"
    "<code>{userid}</code> - member ID\n"
    "<code>{username}</code> - @username\n"
    "<code>{name}</code> - first name\n"
    "<code>{fullname}</code> - full name\n"
    "<code>{group}</code> - group title\n"
    "<code>{membercount}</code> - member count"
)

CANCEL_HINT = "Send /cancel to abort."


def display_name(first_name: Optional[str], last_name: Optional[str] = None, username: Optional[str] = None) -> str:
    name = " ".join(p for p in (first_name, last_name) if p)
    if username:
        name = f"{name} (@{username})" if name else f"@{username}"
    return escape(name or "Unknown")


def format_username(username: Optional[str]) -> str:
    return f"@{escape(username)}" if username else "No username"


def on_off(value: bool) -> str:
    return "✅" if value else "❌"


def group_title(group: Group) -> str:
    return escape(group.title or str(group.group_id))


def start_message(first_name: Optional[str], approved: bool, is_admin: bool) -> str:
    greeting = f"👋 Hello {escape(first_name)}!" if first_name else "👋 Hello!"
    if not approved:
        return (
            f"{greeting}\n\n"
            "I help admins manage Telegram groups: welcome and goodbye messages, "
            "blacklists, warnings and anti-spam rules.\n\n"
            "Access is by approval only. Tap the button below to request access."
        )
    text = (
        f"{greeting}\n\n"
        "You have access to the group manager.\n\n"
        "<b>Getting started</b>\n"
        "1️⃣ Add me to your group as an admin\n"
        "2️⃣ Or forward any message from the group here\n"
        "3️⃣ Manage it with /groups or /settings"
    )
    if is_admin:
        text += "\n\nYou are a bot admin. See /help for admin commands."
    return text


def help_message(is_admin: bool) -> str:
    text = (
        "<b>📖 Commands</b>\n\n"
        "<b>Private chat</b>\n"
        "/start - Start the bot\n"
        "/help - Show this help\n"
        "/addgroup - How to add a group\n"
        "/groups - Your groups\n"
        "/settings - Group settings\n"
        "/setwelcome - Welcome message\n"
        "/setgoodbye - Goodbye message\n"
        "/cancel - Cancel the current action\n\n"
        "<b>In a group</b> (reply to a message or pass an ID / @username)\n"
        "/kick - Kick a member\n"
        "/add - Get an invite link for a user\n"
        "/bl, /unbl - Blacklist / unblacklist\n"
        "/warn, /unwarn - Warn / remove a warning"
    )
    if is_admin:
        text += (
            "\n\n<b>Bot admins</b>\n"
            "/approve &lt;id&gt; - Approve a user\n"
            "/reject &lt;id&gt; - Reject a request\n"
            "/requests - Pending requests\n"
            "/adminlist - Bot admins"
        )
    return text


def not_approved_message() -> str:
    return "⛔ You are not approved to use this bot yet. Use /start to request access."


def addgroup_message(bot_username: Optional[str]) -> str:
    text = (
        "<b>➕ Add a group</b>\n\n"
        "Either add me to the group as an admin, or forward any message "
        "from the group to this chat."
    )
    if bot_username:
        text += f"\n\nAdd me directly: https://t.me/{escape(bot_username)}?startgroup=true"
    return text


def approval_request_admin_message(user: User) -> str:
    return (
        "<b>🔔 New access request</b>\n\n"
        f"Name: {display_name(user.first_name, user.last_name)}\n"
        f"Username: {format_username(user.username)}\n"
        f"ID: <code>{user.telegram_id}</code>"
    )


def pending_requests_message(users: Sequence[User]) -> str:
    if not users:
        return "No pending access requests."
    lines = ["<b>⏳ Pending requests</b>", ""]
    for user in users:
        requested = user.requested_at.strftime("%Y-%m-%d %H:%M") if user.requested_at else "-"
        lines.append(
            f"• {display_name(user.first_name, user.last_name, user.username)} "
            f"<code>{user.telegram_id}</code> ({requested})"
        )
    return "\n".join(lines)


def admin_list_message(static_ids: Sequence[int], stored: Sequence[User]) -> str:
    lines = ["<b>👮 Bot admins</b>", ""]
    seen = set()
    for user in stored:
        seen.add(int(user.telegram_id))
        lines.append(f"• {display_name(user.first_name, user.last_name, user.username)} <code>{user.telegram_id}</code>")
    for admin_id in static_ids:
        if admin_id not in seen:
            lines.append(f"• <code>{admin_id}</code>")
    if len(lines) == 2:
        lines.append("No admins configured.")
    return "\n".join(lines)


def groups_list_message(groups: Sequence[Group]) -> str:
    if not groups:
        return (
            "You have no approved groups yet.\n\n"
            "Add me to a group or forward a message from it here. See /addgroup."
        )
    return f"<b>👥 Your groups</b> ({len(groups)})\n\nChoose a group to manage:"


def group_manage_message(group: Group, blacklist_count: int, warning_count: int) -> str:
    return (
        f"<b>⚙️ {group_title(group)}</b>\n"
        f"ID: <code>{group.group_id}</code>\n\n"
        f"Welcome: {on_off(group.welcome_enabled)}  Goodbye: {on_off(group.goodbye_enabled)}\n"
        f"Blacklisted: {blacklist_count}  Warned: {warning_count}"
    )


def group_settings_message(group: Group) -> str:
    lines = [f"<b>🛠 Settings for {group_title(group)}</b>", ""]
    for field, label in SETTING_LABELS.items():
        lines.append(f"{on_off(getattr(group, field))} {label}")
    lines.append("")
    lines.append("Tap a setting to toggle it.")
    return "\n".join(lines)


def blacklist_message(group: Group, entries: Sequence[BlacklistEntry]) -> str:
    if not entries:
        return f"<b>⚫️ Blacklist of {group_title(group)}</b>\n\nThe blacklist is empty."
    return f"<b>⚫️ Blacklist of {group_title(group)}</b> ({len(entries)})\n\nTap a user for details."


def warnings_message(group: Group, entries: Sequence[WarningEntry], warn_limit: int) -> str:
    if not entries:
        return f"<b>⚠️ Warnings in {group_title(group)}</b>\n\nNo warned users."
    return (
        f"<b>⚠️ Warnings in {group_title(group)}</b> ({len(entries)})\n\n"
        f"Users are kicked automatically at {warn_limit} warnings. Tap a user for details."
    )


def blacklist_info_message(entry: BlacklistEntry) -> str:
    added = entry.added_at.strftime("%Y-%m-%d %H:%M") if entry.added_at else "-"
    return (
        "<b>⚫️ Blacklisted user</b>\n\n"
        f"User ID: <code>{entry.user_id}</code>\n"
        f"Added by: <code>{entry.added_by}</code>\n"
        f"Added at: {added}\n"
        f"Reason: {escape(entry.reason or DEFAULT_REASON)}"
    )


def warning_info_message(entry: WarningEntry, warn_limit: int) -> str:
    added = entry.added_at.strftime("%Y-%m-%d %H:%M") if entry.added_at else "-"
    return (
        "<b>⚠️ Warned user</b>\n\n"
        f"User ID: <code>{entry.user_id}</code>\n"
        f"Warnings: {entry.count}/{warn_limit}\n"
        f"Last warned by: <code>{entry.added_by}</code>\n"
        f"Last warned at: {added}\n"
        f"Last reason: {escape(entry.reason or DEFAULT_REASON)}"
    )


def members_message(
    group: Group,
    member_count: Optional[int],
    admin_count: Optional[int] = None,
    bot_is_admin: Optional[bool] = None,
    admin_lines: Sequence[str] = (),
) -> str:
    def known(value) -> str:
        return "unknown" if value is None else str(value)

    lines = [f"<b>👤 Members of {group_title(group)}</b>", ""]
    lines.append(f"Members: {known(member_count)}")
    lines.append(f"Admins: {known(admin_count)}")
    lines.append(f"Bot is admin: {'unknown' if bot_is_admin is None else on_off(bot_is_admin)}")
    if admin_lines:
        lines.append("")
        lines.append("<b>Admins</b>")
        lines.extend(admin_lines)
    return "\n".join(lines)


def template_settings_message(kind: TemplateKind, group: Group, template, enabled: bool) -> str:
    noun = "Welcome" if kind is TemplateKind.WELCOME else "Goodbye"
    media = template.media_type if template.has_media else "none"
    return (
        f"<b>{'👋' if kind is TemplateKind.WELCOME else '🚪'} {noun} message for {group_title(group)}</b>\n\n"
        f"Status: {on_off(enabled)}\n"
        f"Media: {media}\n"
        f"Caption: {on_off(template.has_caption)}\n"
        f"Tags: {on_off(template.show_tags)}\n"
        f"Buttons: {on_off(template.show_buttons)} ({len(template.buttons)})\n\n"
        f"<b>Text</b>\n<pre>{escape(template.text)}</pre>"
    )


def template_buttons_message(kind: TemplateKind, template) -> str:
    buttons = template.buttons
    if not buttons:
        return f"<b>🔘 {kind.value.title()} buttons</b>\n\nNo buttons yet."
    lines = [f"<b>🔘 {kind.value.title()} buttons</b>", "", "Tap a button to delete it:"]
    for i, button in enumerate(buttons, 1):
        lines.append(f"{i}. {escape(button['text'])} - {escape(button['url'])}")
    return "\n".join(lines)


def pick_group_message(kind: TemplateKind) -> str:
    return f"Choose a group to edit its {kind.value} message:"


def edit_text_prompt(kind: TemplateKind) -> str:
    return f"✏️ Send the new {kind.value} text.\n\n{PLACEHOLDER_HELP}\n\n{CANCEL_HINT}"


def media_prompt(kind: TemplateKind) -> str:
    return f"🖼 Send a photo, video, GIF or sticker for the {kind.value} message.\n\n{CANCEL_HINT}"


def button_text_prompt() -> str:
    return f"🔘 Step 1/2: send the button label.\n\n{CANCEL_HINT}"


def button_url_prompt(label: str) -> str:
    return (
        f"🔗 Step 2/2: send the URL for <b>{escape(label)}</b>.\n"
        "It must start with http://, https:// or tg://\n\n"
        f"{CANCEL_HINT}"
    )


def target_prompt(action: str) -> str:
    return (
        f"👤 Who do you want to {action}?\n\n"
        "Send a user ID or @username, or forward a message from that user.\n\n"
        f"{CANCEL_HINT}"
    )


def reason_prompt(target_id: int) -> str:
    return (
        f"📝 Send the reason for user <code>{target_id}</code>, "
        f"or send <code>skip</code> to use \"{DEFAULT_REASON}\".\n\n{CANCEL_HINT}"
    )


def group_warning_notice(user_id: int, count: int, warn_limit: int, reason: str, by: str) -> str:
    return (
        f"⚠️ Warning for user <code>{user_id}</code>\n\n"
        f"Warning {count}/{warn_limit}\n"
        f"Reason: {escape(reason)}\n"
        f"By: {by}"
    )


def group_limit_notice(user_id: int, warn_limit: int, kicked: bool) -> str:
    if kicked:
        return f"🚫 User <code>{user_id}</code> was removed after {warn_limit} warnings."
    return (
        f"‼️ User <code>{user_id}</code> reached {warn_limit} warnings, "
        "but I lack the rights to remove them."
    )


def group_blacklist_notice(user_id: int, reason: str, by: str) -> str:
    return f"⚫️ User <code>{user_id}</code> was blacklisted.\nReason: {escape(reason)}\nBy: {by}"


def group_kick_notice(user_id: int, reason: str, by: str) -> str:
    return f"👢 User <code>{user_id}</code> was removed from the group by {by}.\nReason: {escape(reason)}"


def unapproved_group_message() -> str:
    return (
        "⛔ This group is not approved to use this bot.\n"
        "Ask a bot admin for access. Leaving now."
    )


def error_apology_message() -> str:
    return "😔 Sorry, something went wrong while processing that. The admins have been notified."


def error_admin_report(error: BaseException, chat_id: Optional[int], user_line: str, text: Optional[str]) -> str:
    snippet = (text or "")[:200]
    return (
        "<b>🚨 Bot error</b>\n\n"
        f"Error: <code>{escape(type(error).__name__)}: {escape(str(error))[:500]}</code>\n"
        f"Chat: <code>{chat_id}</code>\n"
        f"User: {user_line}\n"
        f"Message: {escape(snippet) or '-'}"
    )
