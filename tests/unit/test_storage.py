"""
存储层单元测试
"""

import json
from datetime import datetime

import pytest

from invitecanvas.interfaces import DocumentError, StoreError
from invitecanvas.models import Guest, InvitationTemplate, RsvpStatus
from invitecanvas.storage import (
    JsonRecipientStore,
    JsonTemplateStore,
    load_guests,
    load_guests_csv,
)


class TestGuestImport:
    """嘉宾导入测试"""

    def test_csv_case_insensitive_headers(self, temp_dir):
        path = temp_dir / "guests.csv"
        path.write_text(
            "Name,EMAIL,Status\nAna Silva,ana@example.com,SENT\nBob,,\n,skip@example.com,\n",
            encoding="utf-8-sig",
        )
        guests = load_guests_csv(path)

        assert [g.name for g in guests] == ["Ana Silva", "Bob"]
        assert guests[0].id == "guest-0001"
        assert guests[0].email == "ana@example.com"
        assert guests[0].rsvp_status == RsvpStatus.SENT
        assert guests[1].rsvp_status == RsvpStatus.UNSET

    def test_csv_requires_name(self, temp_dir):
        path = temp_dir / "guests.csv"
        path.write_text("email\na@example.com\n", encoding="utf-8")
        with pytest.raises(StoreError):
            load_guests_csv(path)

    def test_json_by_extension(self, temp_dir):
        path = temp_dir / "guests.json"
        path.write_text(
            json.dumps([{"id": "x1", "name": "Bob", "email": "bob@example.com"}]),
            encoding="utf-8",
        )
        assert load_guests(path)[0].id == "x1"

    def test_json_invalid(self, temp_dir):
        path = temp_dir / "guests.json"
        path.write_text('[{"email": "no-name"}]', encoding="utf-8")
        with pytest.raises(StoreError):
            load_guests(path)


class TestJsonRecipientStore:
    """收件人存储测试"""

    def test_list_guests_missing_file(self, runtime_config):
        assert JsonRecipientStore(runtime_config).list_guests("none") == []

    def test_update_status(self, runtime_config, guests):
        store = JsonRecipientStore(runtime_config)
        store.save_guests("tpl", guests)
        sent_at = datetime(2024, 6, 1, 12, 0)
        store.update_status("tpl", "g2", RsvpStatus.SENT, sent_at=sent_at)

        stored = {g.id: g for g in store.list_guests("tpl")}
        assert stored["g2"].rsvp_status == RsvpStatus.SENT
        assert stored["g2"].sent_at == sent_at
        assert stored["g2"].already_sent
        assert not stored["g1"].already_sent

    def test_update_unknown_guest(self, runtime_config, guests):
        store = JsonRecipientStore(runtime_config)
        store.save_guests("tpl", guests)
        with pytest.raises(StoreError):
            store.update_status("tpl", "ghost", RsvpStatus.SENT)

    def test_corrupt_file(self, runtime_config):
        path = runtime_config.get_template_dir("tpl") / "guests.json"
        path.parent.mkdir(parents=True)
        path.write_text("[", encoding="utf-8")
        with pytest.raises(StoreError):
            JsonRecipientStore(runtime_config).list_guests("tpl")


class TestJsonTemplateStore:
    """模板存储测试"""

    def test_round_trip(self, runtime_config, sample_document):
        store = JsonTemplateStore(runtime_config)
        template = InvitationTemplate(
            id="tpl-1", title="Gala", editor_data=sample_document, reply_to_email="a@b.c"
        )
        store.save_template(template)

        raw = json.loads((runtime_config.get_template_dir("tpl-1") / "template.json").read_text("utf-8"))
        assert len(raw["editor_data"]["objects"]) == 3

        loaded = store.load_template("tpl-1")
        assert loaded.title == "Gala"
        assert loaded.reply_to_email == "a@b.c"
        assert loaded.editor_data.fingerprint() == sample_document.fingerprint()
        assert store.load_document("tpl-1").fingerprint() == sample_document.fingerprint()

    def test_missing_template(self, runtime_config):
        with pytest.raises(StoreError):
            JsonTemplateStore(runtime_config).load_template("absent")

    def test_missing_document(self, runtime_config):
        path = runtime_config.get_template_dir("bare") / "template.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"id": "bare", "title": "No canvas"}), encoding="utf-8")
        with pytest.raises(DocumentError):
            JsonTemplateStore(runtime_config).load_template("bare")

    def test_guest_import_into_store(self, runtime_config, temp_dir):
        path = temp_dir / "list.csv"
        path.write_text("id,name,email\nz9,Zoe,zoe@example.com\n", encoding="utf-8")
        store = JsonRecipientStore(runtime_config)
        store.save_guests("tpl", load_guests(path))
        assert store.list_guests("tpl") == [Guest(id="z9", name="Zoe", email="zoe@example.com")]
