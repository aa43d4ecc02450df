"""Tests for Slack export archive parsing"""

import zipfile

import pytest

from slack_transform import ExportParseError, MessageKind, SlackExport, SlackPost
from tests.fixtures import sample_export_zip, write_export_zip


class TestSlackPost:
    """Test message classification"""

    @pytest.mark.parametrize("subtype,kind", [
        ("", MessageKind.PLAIN),
        ("file_share", MessageKind.PLAIN),
        ("thread_broadcast", MessageKind.PLAIN),
        ("file_comment", MessageKind.FILE_COMMENT),
        ("bot_message", MessageKind.BOT),
        ("channel_join", MessageKind.JOIN_LEAVE),
        ("channel_leave", MessageKind.JOIN_LEAVE),
        ("me_message", MessageKind.ME),
        ("channel_topic", MessageKind.TOPIC),
        ("channel_purpose", MessageKind.PURPOSE),
        ("channel_name", MessageKind.NAME),
        ("pinned_item", MessageKind.UNSUPPORTED),
    ])
    def test_kind(self, subtype, kind):
        assert SlackPost(ts="1", subtype=subtype).kind == kind

    def test_non_message_type_unsupported(self):
        assert SlackPost(type="event", ts="1").kind == MessageKind.UNSUPPORTED

    def test_is_thread_reply(self):
        assert SlackPost(ts="2", thread_ts="1").is_thread_reply
        assert not SlackPost(ts="1", thread_ts="1").is_thread_reply
        assert not SlackPost(ts="1").is_thread_reply

    def test_shared_files_prefers_legacy_file(self):
        post = SlackPost(
            ts="1",
            file={"id": "F1", "name": "a.txt"},
            files=[{"id": "F2", "name": "b.txt"}],
        )
        assert [f.id for f in post.shared_files] == ["F1"]

    def test_shared_files(self):
        post = SlackPost(ts="1", files=[{"id": "F2", "name": "b.txt"}, {"id": "F3"}])
        assert [f.id for f in post.shared_files] == ["F2", "F3"]
        assert SlackPost(ts="1").shared_files == []

    def test_unknown_fields_ignored(self):
        post = SlackPost.model_validate({"ts": "1", "text": "hi", "reactions": [{"name": "+1"}]})
        assert post.text == "hi"


class TestFromZip:
    """Test reading a complete export archive"""

    def test_parse_sample_export(self, tmp_path):
        with zipfile.ZipFile(sample_export_zip(tmp_path / "export.zip")) as archive:
            export = SlackExport.from_zip(archive)

        assert [u.username for u in export.users] == ["john.doe", "jane.smith"]
        assert [c.name for c in export.public_channels] == ["engineering"]
        assert export.public_channels[0].type == "O"
        assert export.public_channels[0].purpose.value == "Build things"
        assert [c.original_name for c in export.direct_channels] == ["D001"]
        assert export.direct_channels[0].type == "D"
        assert len(export.posts["engineering"]) == 4
        assert len(export.posts["D001"]) == 1
        assert list(export.uploads) == ["F001"]

    def test_channel_types_from_file(self, tmp_path):
        path = write_export_zip(
            tmp_path / "export.zip",
            channels=[{"id": "C1", "name": "public"}],
            groups=[{"id": "P1", "name": "private"}],
            mpims=[{"id": "G1", "name": "mpdm-a"}],
            dms=[{"id": "D1"}],
        )
        with zipfile.ZipFile(path) as archive:
            export = SlackExport.from_zip(archive)

        assert [c.type for c in export.all_channels] == ["O", "P", "G", "D"]

    def test_posts_merged_across_days(self, tmp_path):
        path = tmp_path / "export.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("channels.json", '[{"id": "C1", "name": "general"}]')
            archive.writestr("general/2023-10-17.json", '[{"type": "message", "ts": "1"}]')
            archive.writestr("general/2023-10-18.json", '[{"type": "message", "ts": "2"}]')

        with zipfile.ZipFile(path) as archive:
            export = SlackExport.from_zip(archive)

        assert sorted(p.ts for p in export.posts["general"]) == ["1", "2"]

    def test_markup_converted(self, tmp_path):
        with zipfile.ZipFile(sample_export_zip(tmp_path / "export.zip")) as archive:
            export = SlackExport.from_zip(archive)

        texts = [p.text for p in export.posts["engineering"]]
        assert "Reply from @john.doe" in texts
        assert "**Deploy** starts now" in texts

    def test_skip_convert_posts(self, tmp_path):
        with zipfile.ZipFile(sample_export_zip(tmp_path / "export.zip")) as archive:
            export = SlackExport.from_zip(archive, skip_convert_posts=True)

        texts = [p.text for p in export.posts["engineering"]]
        assert "Reply from <@U001>" in texts

    def test_file_comment_markup_converted(self, tmp_path):
        path = write_export_zip(
            tmp_path / "export.zip",
            channels=[{"id": "C1", "name": "general"}],
            users=[{"id": "U1", "name": "jane"}],
            posts={"general": [{"type": "message", "subtype": "file_comment", "ts": "1",
                                "comment": {"comment": "thanks <@U1>", "user": "U1"}}]},
        )
        with zipfile.ZipFile(path) as archive:
            export = SlackExport.from_zip(archive)

        assert export.posts["general"][0].comment.comment == "thanks @jane"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "export.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("users.json", "{not json")

        with zipfile.ZipFile(path) as archive:
            with pytest.raises(ExportParseError, match="users.json"):
                SlackExport.from_zip(archive)

    def test_json_must_be_a_list(self, tmp_path):
        path = tmp_path / "export.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("channels.json", '{"id": "C1"}')

        with zipfile.ZipFile(path) as archive:
            with pytest.raises(ExportParseError, match="Expected a JSON list"):
                SlackExport.from_zip(archive)

    def test_invalid_record(self, tmp_path):
        path = write_export_zip(tmp_path / "export.zip", users=[{"name": "no-id"}])

        with zipfile.ZipFile(path) as archive:
            with pytest.raises(ExportParseError, match="Invalid record"):
                SlackExport.from_zip(archive)
