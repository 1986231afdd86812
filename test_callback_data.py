"""Inline-button payloads are packed compactly and parsed back into typed values."""
import pytest

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


def test_negative_group_ids_survive_packing():
    packed = GroupMenuCb(menu=GroupMenu.BLACKLIST, group_id=-1001234567890).pack()
    assert packed == "grp:blacklist:-1001234567890"
    parsed = GroupMenuCb.unpack(packed)
    assert parsed.menu is GroupMenu.BLACKLIST
    assert parsed.group_id == -1001234567890


def test_optional_user_id():
    assert MemberActionCb.unpack("mem:add_warn:-5:").user_id is None
    parsed = MemberActionCb.unpack("mem:unwarn:-5:777")
    assert parsed.action is MemberAction.UNWARN
    assert parsed.user_id == 777


def test_template_payload_with_index():
    cb = TemplateCb(kind=TemplateKind.GOODBYE, action=TemplateAction.DELETE_BUTTON, group_id=-5, index=2)
    parsed = TemplateCb.unpack(cb.pack())
    assert (parsed.kind, parsed.action, parsed.index) == (TemplateKind.GOODBYE, TemplateAction.DELETE_BUTTON, 2)


def test_payloads_fit_telegram_limit():
    longest = TemplateCb(
        kind=TemplateKind.WELCOME, action=TemplateAction.TOGGLE_CAPTION, group_id=-1009999999999, index=99
    )
    assert len(longest.pack().encode()) <= 64
    setting = ToggleSettingCb(group_id=-1009999999999, setting="restrict_new_members")
    assert len(setting.pack().encode()) <= 64


def test_wrong_prefix_or_value_is_rejected():
    with pytest.raises(ValueError):
        ApprovalCb.unpack("grp:manage:-1")
    with pytest.raises(ValueError):
        ApprovalCb.unpack("appr:explode:1")


def test_approval_defaults():
    assert ApprovalCb(action=ApprovalAction.REQUEST).pack() == "appr:request:0"
