"""
End-to-end handler scenarios.

Updates are real aiogram objects fed through the real dispatcher (routers,
middlewares, filters, callback parsing); outbound calls land in FakeBot.
"""
import asyncio
from datetime import datetime

from aiogram.types import (
    Chat,
    ChatMemberLeft,
    ChatMemberMember,
    ChatMemberUpdated,
    MessageOriginChat,
    MessageOriginUser,
    PhotoSize,
    Update,
)

from bot.services.conversation_service import FlowKind
from bot.services.moderation_service import DEFAULT_REASON
from bot.services.template_service import TemplateKind
from bot.utils.callback_data import (
    ApprovalAction,
    ApprovalCb,
    GroupMenu,
    GroupMenuCb,
    MemberAction,
    MemberActionCb,
    TemplateAction,
    TemplateCb,
    ToggleSettingCb,
)
from conftest import (
    ADMIN_ID,
    BOT_ID,
    GROUP_ID,
    callback,
    group_message,
    make_group,
    make_user,
    private_message,
)

ADMIN = make_user(ADMIN_ID, "Root", "root_admin")
ALICE = make_user(555, "Alice", "alice_w")
CARL = make_user(7, "Carl", "carl_c")
CHAT_ADMIN = make_user(600, "Chief")


def _answers(fake_bot) -> list:
    return [c.get("text") for c in fake_bot.called("answer_callback_query")]


async def _approve(container, user):
    await container.approval_service.ensure_user(user)
    await container.approval_service.approve(user.id, ADMIN_ID)


# ========== APPROVAL ==========


async def test_start_registers_unapproved_user(feed, container, fake_bot):
    await feed(private_message(CARL, "/start"))

    stored = await container.approval_service.get_user(CARL.id)
    assert stored is not None and stored.is_approved is False
    (sent,) = fake_bot.called("send_message")
    assert "request access" in sent["text"]
    assert sent["reply_markup"].inline_keyboard[0][0].callback_data == "appr:request:0"


async def test_request_then_admin_approval(feed, container, fake_bot):
    await feed(private_message(CARL, "/start"))
    await feed(callback(CARL, ApprovalCb(action=ApprovalAction.REQUEST)))

    stored = await container.approval_service.get_user(CARL.id)
    assert stored.requested_at is not None
    to_admin = [c for c in fake_bot.called("send_message") if c["chat_id"] == ADMIN_ID]
    assert len(to_admin) == 1
    buttons = to_admin[0]["reply_markup"].inline_keyboard[0]
    assert [b.callback_data for b in buttons] == ["appr:approve:7", "appr:deny:7"]

    fake_bot.calls.clear()
    await feed(callback(ADMIN, ApprovalCb(action=ApprovalAction.APPROVE, user_id=CARL.id)))

    assert await container.approval_service.is_user_approved(CARL.id)
    assert any("approved" in t for t in fake_bot.texts(CARL.id))


async def test_only_admins_decide_requests(feed, container, fake_bot):
    await _approve(container, CARL)
    await container.approval_service.request_approval(ALICE)

    await feed(callback(CARL, ApprovalCb(action=ApprovalAction.APPROVE, user_id=ALICE.id)))

    assert not await container.approval_service.is_user_approved(ALICE.id)
    assert _answers(fake_bot) == ["⛔ Bot admins only."]


async def test_unapproved_user_is_refused(feed, fake_bot):
    await feed(private_message(CARL, "/groups"))
    (sent,) = fake_bot.called("send_message")
    assert "not approved" in sent["text"]
    assert sent["reply_markup"] is not None


async def test_adminlist_is_open_to_everyone(feed, fake_bot):
    await feed(private_message(CARL, "/adminlist"))
    (sent,) = fake_bot.called("send_message")
    assert f"<code>{ADMIN_ID}</code>" in sent["text"]


async def test_approve_command(feed, container, fake_bot):
    await container.approval_service.ensure_user(CARL)
    await feed(private_message(ADMIN, f"/approve {CARL.id}"))
    assert await container.approval_service.is_user_approved(CARL.id)
    assert fake_bot.texts(CARL.id)

    fake_bot.calls.clear()
    await feed(private_message(ADMIN, "/approve nope"))
    assert "Usage" in fake_bot.texts(ADMIN_ID)[0]


async def test_requests_lists_pending(feed, container, fake_bot):
    await container.approval_service.request_approval(CARL)
    await feed(private_message(ADMIN, "/requests"))
    texts = fake_bot.texts(ADMIN_ID)
    assert "Pending requests" in texts[0]
    assert "<code>7</code>" in texts[1]


# ========== GROUP REGISTRATION ==========


async def test_forwarded_group_hidden_until_approved(feed, container, fake_bot):
    await _approve(container, CARL)
    origin = MessageOriginChat(
        date=datetime.now(), sender_chat=Chat(id=-300, type="supergroup", title="Forwarded")
    )
    await feed(private_message(CARL, "hello", forward_origin=origin))

    group = await container.group_service.get_group(-300)
    assert group is not None and group.is_approved is False
    assert "needs approval" in fake_bot.texts(CARL.id)[0]

    fake_bot.calls.clear()
    await feed(private_message(CARL, "/settings"))
    (sent,) = fake_bot.called("send_message")
    assert "no approved groups" in sent["text"]
    assert sent["reply_markup"] is None

    await container.approval_service.is_group_approved(-300, "Forwarded", ADMIN_ID)
    fake_bot.calls.clear()
    await feed(private_message(CARL, "/settings"))
    (sent,) = fake_bot.called("send_message")
    assert sent["reply_markup"].inline_keyboard[0][0].text == "Forwarded"


async def test_group_forwarded_by_admin_is_approved(feed, container):
    origin = MessageOriginChat(
        date=datetime.now(), sender_chat=Chat(id=-301, type="supergroup", title="Admin Group")
    )
    await feed(private_message(ADMIN, "hi", forward_origin=origin))
    assert (await container.group_service.get_group(-301)).is_approved


async def test_bot_added_by_unapproved_user_leaves(feed, fake_bot):
    bot_user = make_user(BOT_ID, "Keeper", "keeper_bot", is_bot=True)
    event = ChatMemberUpdated(
        chat=Chat(id=GROUP_ID, type="supergroup", title="Random"),
        from_user=CARL,
        date=datetime.now(),
        old_chat_member=ChatMemberLeft(user=bot_user),
        new_chat_member=ChatMemberMember(user=bot_user),
    )
    await feed(Update(update_id=900, my_chat_member=event))
    assert "not approved" in fake_bot.texts(GROUP_ID)[0]
    assert fake_bot.called("leave_chat") == [{"chat_id": GROUP_ID}]


async def test_bot_added_by_admin_stays(feed, container, fake_bot):
    bot_user = make_user(BOT_ID, "Keeper", "keeper_bot", is_bot=True)
    event = ChatMemberUpdated(
        chat=Chat(id=GROUP_ID, type="supergroup", title="Admin Chat"),
        from_user=ADMIN,
        date=datetime.now(),
        old_chat_member=ChatMemberLeft(user=bot_user),
        new_chat_member=ChatMemberMember(user=bot_user),
    )
    await feed(Update(update_id=901, my_chat_member=event))
    assert (await container.group_service.get_group(GROUP_ID)).is_approved
    assert fake_bot.called("leave_chat") == []


async def test_message_in_unapproved_group_makes_bot_leave(feed, fake_bot):
    await feed(group_message(CARL, "hi there"))
    assert fake_bot.called("leave_chat") == [{"chat_id": GROUP_ID}]


# ========== GROUP PIPELINE ==========


async def test_anti_link_deletes_member_links_only(feed, db, fake_bot):
    await make_group(db, anti_link=True)
    fake_bot.statuses[(GROUP_ID, CHAT_ADMIN.id)] = "creator"

    message = group_message(ALICE, "check http://example.com")
    await feed(message)
    assert fake_bot.called("delete_message") == [{"chat_id": GROUP_ID, "message_id": message.message_id}]
    assert "links are not allowed" in fake_bot.texts(GROUP_ID)[0]

    fake_bot.calls.clear()
    await feed(group_message(CHAT_ADMIN, "check http://example.com"))
    assert fake_bot.called("delete_message") == []


async def test_blacklisted_sender_is_silenced(feed, db, container, fake_bot):
    await make_group(db)
    await container.moderation_service.add_to_blacklist(GROUP_ID, ALICE.id, ADMIN_ID)
    await feed(group_message(ALICE, "hello"))
    assert len(fake_bot.called("delete_message")) == 1
    assert fake_bot.texts(GROUP_ID) == []


async def test_admin_only_commands(feed, db, container, fake_bot):
    await make_group(db, admin_only_commands=True)
    await _approve(container, CARL)
    await feed(group_message(CARL, f"/warn {ALICE.id}"))
    assert len(fake_bot.called("delete_message")) == 1
    assert "only admins" in fake_bot.texts(GROUP_ID)[0]
    assert await container.moderation_service.get_warning(GROUP_ID, ALICE.id) is None


async def test_commands_auto_deleted(feed, db, fake_bot):
    await make_group(db, auto_delete_commands=True)
    message = group_message(ADMIN, "/unbl 555")
    await feed(message)
    # Let the deferred delete (zero delay in tests) run.
    await asyncio.sleep(0.05)
    assert {"chat_id": GROUP_ID, "message_id": message.message_id} in fake_bot.called("delete_message")



async def test_anonymous_admin_is_exempt_from_filters(feed, db, container, fake_bot):
    await make_group(db, anti_link=True, admin_only_commands=True)
    anonymous = make_user(1087968824, "Group", "GroupAnonymousBot", is_bot=True)
    as_group = Chat(id=GROUP_ID, type="supergroup", title="Test Group")

    await feed(group_message(anonymous, "rules at http://example.com", sender_chat=as_group))
    assert fake_bot.called("delete_message") == []
    assert fake_bot.texts(GROUP_ID) == []

    await feed(group_message(anonymous, f"/warn {ALICE.id}", sender_chat=as_group))
    assert fake_bot.called("delete_message") == []
    assert "Remain anonymous" in fake_bot.texts(GROUP_ID)[0]
    assert await container.moderation_service.get_warning(GROUP_ID, ALICE.id) is None


# ========== GREETINGS ==========


async def test_welcome_mentions_new_member(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, TemplateCb(kind=TemplateKind.WELCOME, action=TemplateAction.EDIT_TEXT, group_id=GROUP_ID)))
    await feed(private_message(ADMIN, "Hi {user}!"))
    assert (await container.group_service.get_group(GROUP_ID)).welcome_enabled is True

    fake_bot.calls.clear()
    await feed(group_message(ALICE, new_chat_members=[ALICE]))
    assert fake_bot.texts(GROUP_ID) == ['Hi <a href="tg://user?id=555">Alice</a>!']

    fake_bot.calls.clear()
    other_bot = make_user(77, "Helper", is_bot=True)
    await feed(group_message(ADMIN, new_chat_members=[other_bot]))
    assert fake_bot.texts(GROUP_ID) == []


async def test_goodbye_once_template_exists(feed, db, container, fake_bot):
    await make_group(db)
    await container.template_service.get_or_create(TemplateKind.GOODBYE, GROUP_ID)
    await feed(group_message(ALICE, left_chat_member=ALICE))
    assert fake_bot.texts(GROUP_ID) == ["Goodbye!"]


async def test_no_welcome_when_disabled(feed, db, container, fake_bot):
    await make_group(db)
    await container.template_service.set_text(TemplateKind.WELCOME, GROUP_ID, "Hi {user}!")
    await feed(callback(ADMIN, TemplateCb(kind=TemplateKind.WELCOME, action=TemplateAction.TOGGLE, group_id=GROUP_ID)))
    assert (await container.group_service.get_group(GROUP_ID)).welcome_enabled is False

    fake_bot.calls.clear()
    await feed(group_message(ALICE, new_chat_members=[ALICE]))
    assert fake_bot.texts(GROUP_ID) == []


# ========== GROUP COMMANDS ==========


async def test_warn_command_until_kick(feed, db, container, fake_bot):
    await make_group(db)
    for i in range(3):
        reply = group_message(ALICE, "spam")
        await feed(group_message(ADMIN, "/warn flooding", reply_to_message=reply))

    assert await container.moderation_service.get_warning(GROUP_ID, ALICE.id) is None
    texts = fake_bot.texts(GROUP_ID)
    assert any("Warning 1/3" in t for t in texts)
    assert any("Warning 3/3" in t for t in texts)
    assert any("removed after 3 warnings" in t for t in texts)
    assert [c["user_id"] for c in fake_bot.called("ban_chat_member")] == [ALICE.id]


async def test_blacklist_commands(feed, db, container, fake_bot):
    await make_group(db)
    await feed(group_message(ADMIN, f"/bl {ALICE.id} raiding"))
    entry = await container.moderation_service.get_blacklist_entry(GROUP_ID, ALICE.id)
    assert entry.reason == "raiding"

    await feed(group_message(ADMIN, f"/bl {ALICE.id}"))
    assert "already blacklisted" in fake_bot.texts(GROUP_ID)[-1]

    await feed(group_message(ADMIN, f"/unbl {ALICE.id}"))
    assert not await container.moderation_service.is_blacklisted(GROUP_ID, ALICE.id)
    await feed(group_message(ADMIN, f"/unbl {ALICE.id}"))
    assert "not blacklisted" in fake_bot.texts(GROUP_ID)[-1]


async def test_kick_by_known_username(feed, db, container, fake_bot):
    await make_group(db)
    await container.approval_service.ensure_user(ALICE)
    await feed(group_message(ADMIN, "/kick @alice_w"))
    assert [c["user_id"] for c in fake_bot.called("ban_chat_member")] == [ALICE.id]
    assert [c["user_id"] for c in fake_bot.called("unban_chat_member")] == [ALICE.id]
    assert DEFAULT_REASON in fake_bot.texts(GROUP_ID)[-1]


async def test_username_resolved_from_chat_admins(feed, db, fake_bot):
    await make_group(db)
    fake_bot.statuses[(GROUP_ID, CHAT_ADMIN.id)] = "administrator"
    fake_bot.usernames[CHAT_ADMIN.id] = "chief_admin"
    await feed(group_message(ADMIN, "/kick @chief_admin"))
    assert "Admins cannot be kicked" in fake_bot.texts(GROUP_ID)[-1]
    assert fake_bot.called("ban_chat_member") == []


async def test_add_exports_invite_link(feed, db, fake_bot):
    await make_group(db)
    await feed(group_message(ADMIN, "/add @alice_w"))
    assert "https://t.me/+invite" in fake_bot.texts(GROUP_ID)[-1]


async def test_group_commands_need_chat_admin(feed, db, container, fake_bot):
    await make_group(db)
    await _approve(container, CARL)
    await feed(group_message(CARL, f"/kick {ALICE.id}"))
    assert "Only group admins" in fake_bot.texts(GROUP_ID)[-1]
    assert fake_bot.called("ban_chat_member") == []


# ========== CONVERSATION FLOWS ==========


async def test_edit_text_flow(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, TemplateCb(kind=TemplateKind.WELCOME, action=TemplateAction.EDIT_TEXT, group_id=GROUP_ID)))
    assert container.conversations.get(ADMIN_ID).kind == FlowKind.EDIT_WELCOME_TEXT

    await feed(private_message(ADMIN, "Hello {name}, welcome!"))

    template = await container.template_service.get(TemplateKind.WELCOME, GROUP_ID)
    assert template.text == "Hello {name}, welcome!"
    assert not container.conversations.has_pending(ADMIN_ID)


async def test_cancel_clears_without_mutation(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, TemplateCb(kind=TemplateKind.GOODBYE, action=TemplateAction.EDIT_TEXT, group_id=GROUP_ID)))
    fake_bot.calls.clear()

    await feed(private_message(ADMIN, "/cancel"))
    assert fake_bot.texts(ADMIN_ID) == ["❎ Cancelled."]
    assert not container.conversations.has_pending(ADMIN_ID)
    template = await container.template_service.get(TemplateKind.GOODBYE, GROUP_ID)
    assert template is None or template.text == "Goodbye!"

    fake_bot.calls.clear()
    await feed(private_message(ADMIN, "/cancel"))
    assert fake_bot.calls == []


async def test_commands_pass_through_pending_flow(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, TemplateCb(kind=TemplateKind.WELCOME, action=TemplateAction.EDIT_TEXT, group_id=GROUP_ID)))
    await feed(private_message(ADMIN, "/help"))
    assert container.conversations.has_pending(ADMIN_ID)
    template = await container.template_service.get(TemplateKind.WELCOME, GROUP_ID)
    assert template is None or template.text == "Welcome to the group!"


async def test_button_wizard_reprompts_on_bad_url(feed, db, container, fake_bot):
    await make_group(db)
    kind = TemplateKind.WELCOME
    await feed(callback(ADMIN, TemplateCb(kind=kind, action=TemplateAction.ADD_BUTTON, group_id=GROUP_ID)))
    await feed(private_message(ADMIN, "Rules"))
    assert container.conversations.get(ADMIN_ID).kind == FlowKind.ADD_WELCOME_BUTTON_URL

    await feed(private_message(ADMIN, "ftp://example.com"))
    assert "Invalid URL" in fake_bot.texts(ADMIN_ID)[-1]
    assert container.conversations.has_pending(ADMIN_ID)

    await feed(private_message(ADMIN, "https://example.com/rules"))
    template = await container.template_service.get(kind, GROUP_ID)
    assert template.buttons == [{"text": "Rules", "url": "https://example.com/rules"}]
    assert not container.conversations.has_pending(ADMIN_ID)


async def test_media_flow_ignores_text_and_keeps_largest_photo(feed, db, container, fake_bot):
    await make_group(db)
    kind = TemplateKind.GOODBYE
    await feed(callback(ADMIN, TemplateCb(kind=kind, action=TemplateAction.SET_MEDIA, group_id=GROUP_ID)))
    fake_bot.calls.clear()

    await feed(private_message(ADMIN, "this is not media"))
    assert fake_bot.calls == []
    assert container.conversations.has_pending(ADMIN_ID)

    photo = [
        PhotoSize(file_id="small", file_unique_id="s", width=90, height=90),
        PhotoSize(file_id="large", file_unique_id="l", width=1280, height=1280),
    ]
    await feed(private_message(ADMIN, photo=photo))
    template = await container.template_service.get(kind, GROUP_ID)
    assert (template.media_type, template.media_file_id) == ("photo", "large")
    assert not container.conversations.has_pending(ADMIN_ID)


async def test_warn_wizard(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, MemberActionCb(action=MemberAction.ADD_WARNING, group_id=GROUP_ID)))
    await feed(private_message(ADMIN, str(ALICE.id)))
    flow = container.conversations.get(ADMIN_ID)
    assert (flow.kind, flow.target_id) == (FlowKind.AWAIT_WARN_REASON, ALICE.id)

    await feed(private_message(ADMIN, "SKIP"))
    entry = await container.moderation_service.get_warning(GROUP_ID, ALICE.id)
    assert (entry.count, entry.reason) == (1, DEFAULT_REASON)
    assert "Warning 1/3" in fake_bot.texts(GROUP_ID)[0]
    assert not container.conversations.has_pending(ADMIN_ID)


async def test_blacklist_wizard(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, MemberActionCb(action=MemberAction.ADD_BLACKLIST, group_id=GROUP_ID)))
    await feed(private_message(ADMIN, str(ALICE.id)))
    assert container.conversations.get(ADMIN_ID).kind == FlowKind.AWAIT_BLACKLIST_REASON

    await feed(private_message(ADMIN, "raiding"))
    entry = await container.moderation_service.get_blacklist_entry(GROUP_ID, ALICE.id)
    assert (entry.reason, entry.added_by) == ("raiding", ADMIN_ID)
    assert "was blacklisted" in fake_bot.texts(GROUP_ID)[0]
    assert "blacklisted" in fake_bot.texts(ADMIN_ID)[-1]
    assert not container.conversations.has_pending(ADMIN_ID)


async def test_kick_wizard(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, MemberActionCb(action=MemberAction.KICK, group_id=GROUP_ID)))
    await feed(private_message(ADMIN, str(ALICE.id)))
    assert container.conversations.get(ADMIN_ID).kind == FlowKind.AWAIT_KICK_REASON

    await feed(private_message(ADMIN, "skip"))
    assert fake_bot.called("ban_chat_member") == [{"chat_id": GROUP_ID, "user_id": ALICE.id}]
    assert fake_bot.called("unban_chat_member") == [{"chat_id": GROUP_ID, "user_id": ALICE.id, "only_if_banned": True}]
    assert "was removed" in fake_bot.texts(GROUP_ID)[0]
    assert "was kicked" in fake_bot.texts(ADMIN_ID)[-1]
    assert not container.conversations.has_pending(ADMIN_ID)


async def test_kick_wizard_without_ban_right(feed, db, container, fake_bot):
    await make_group(db)
    fake_bot.bot_can_restrict = False
    await feed(callback(ADMIN, MemberActionCb(action=MemberAction.KICK, group_id=GROUP_ID)))
    await feed(private_message(ADMIN, str(ALICE.id)))
    await feed(private_message(ADMIN, "flooding"))

    assert fake_bot.called("ban_chat_member") == []
    assert "Ban users" in fake_bot.texts(ADMIN_ID)[-1]
    assert fake_bot.texts(GROUP_ID) == []
    assert not container.conversations.has_pending(ADMIN_ID)


async def test_wizard_target_from_forwarded_message(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, MemberActionCb(action=MemberAction.ADD_BLACKLIST, group_id=GROUP_ID)))
    forwarded = private_message(ADMIN, "buy cheap followers", forward_origin=MessageOriginUser(date=datetime.now(), sender_user=ALICE))
    await feed(forwarded)

    flow = container.conversations.get(ADMIN_ID)
    assert (flow.kind, flow.target_id) == (FlowKind.AWAIT_BLACKLIST_REASON, ALICE.id)


async def test_wizard_rejects_protected_and_unknown_targets(feed, db, container, fake_bot):
    await make_group(db)
    fake_bot.statuses[(GROUP_ID, CHAT_ADMIN.id)] = "administrator"
    await feed(callback(ADMIN, MemberActionCb(action=MemberAction.ADD_BLACKLIST, group_id=GROUP_ID)))

    await feed(private_message(ADMIN, "@nobody_known"))
    assert "could not find" in fake_bot.texts(ADMIN_ID)[-1]
    assert container.conversations.has_pending(ADMIN_ID)

    await feed(private_message(ADMIN, str(CHAT_ADMIN.id)))
    assert "cannot be moderated" in fake_bot.texts(ADMIN_ID)[-1]
    assert not container.conversations.has_pending(ADMIN_ID)
    assert await container.moderation_service.list_blacklist(GROUP_ID) == []


async def test_new_flow_supersedes_old_one(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, TemplateCb(kind=TemplateKind.WELCOME, action=TemplateAction.EDIT_TEXT, group_id=GROUP_ID)))
    await feed(callback(ADMIN, MemberActionCb(action=MemberAction.KICK, group_id=GROUP_ID)))
    assert container.conversations.get(ADMIN_ID).kind == FlowKind.AWAIT_KICK_USER

    await feed(private_message(ADMIN, "not a user"))
    template = await container.template_service.get(TemplateKind.WELCOME, GROUP_ID)
    assert template is None or template.text == "Welcome to the group!"
    assert container.conversations.get(ADMIN_ID).kind == FlowKind.AWAIT_KICK_USER


# ========== MENUS ==========


async def test_toggle_setting(feed, db, container, fake_bot):
    await make_group(db)
    await feed(callback(ADMIN, ToggleSettingCb(group_id=GROUP_ID, setting="anti_link")))
    assert (await container.group_service.get_group(GROUP_ID)).anti_link is True
    assert "Anti Link: on" in _answers(fake_bot)

    fake_bot.calls.clear()
    await feed(callback(ADMIN, ToggleSettingCb(group_id=GROUP_ID, setting="is_approved")))
    assert _answers(fake_bot) == ["Unrecognized action"]
    assert (await container.group_service.get_group(GROUP_ID)).is_approved is True


async def test_members_menu_reports_admins_and_bot_rights(feed, db, fake_bot):
    await make_group(db)
    fake_bot.statuses[(GROUP_ID, CHAT_ADMIN.id)] = "creator"
    await feed(callback(ADMIN, GroupMenuCb(menu=GroupMenu.MEMBERS, group_id=GROUP_ID)))
    text = fake_bot.texts()[-1]
    assert "Members: 10" in text
    assert "Admins: 2" in text
    assert "Bot is admin: ✅" in text

    fake_bot.calls.clear()
    fake_bot.bot_status = "member"
    await feed(callback(ADMIN, GroupMenuCb(menu=GroupMenu.VIEW_ALL, group_id=GROUP_ID)))
    text = fake_bot.texts()[-1]
    assert "Admins: 1" in text
    assert "Bot is admin: ❌" in text
    assert "tg://user?id=600" in text


async def test_non_manager_cannot_open_group(feed, db, container, fake_bot):
    await make_group(db)
    await _approve(container, CARL)
    await feed(callback(CARL, ToggleSettingCb(group_id=GROUP_ID, setting="anti_spam")))
    assert _answers(fake_bot) == ["⛔ You cannot manage this group."]
    assert (await container.group_service.get_group(GROUP_ID)).anti_spam is False


async def test_unknown_callback(feed, fake_bot):
    await feed(callback(CARL, "something:else:1"))
    assert _answers(fake_bot) == ["Unrecognized action"]


async def test_template_preview_goes_to_requester(feed, db, container, fake_bot):
    await make_group(db)
    await container.template_service.set_text(TemplateKind.WELCOME, GROUP_ID, "Hey {name}")
    await feed(callback(ADMIN, TemplateCb(kind=TemplateKind.WELCOME, action=TemplateAction.PREVIEW, group_id=GROUP_ID)))
    assert "Hey Root" in fake_bot.texts(ADMIN_ID)
    assert fake_bot.texts(GROUP_ID) == []


# ========== ERRORS ==========


async def test_unexpected_error_is_reported(feed, container, fake_bot, monkeypatch):
    async def boom(*args, **kwargs):
        raise RuntimeError("storage exploded")

    monkeypatch.setattr(container.group_service, "list_manageable", boom)
    await feed(private_message(ADMIN, "/groups"))

    texts = fake_bot.texts(ADMIN_ID)
    assert any("Sorry, something went wrong" in t for t in texts)
    assert any("storage exploded" in t for t in texts)
