"""Tests for the MongoDB store using mocked PyMongo async collections."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pymongo.errors import AutoReconnect, ServerSelectionTimeoutError

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from dear_stranger.errors import StorageUnavailable
from dear_stranger.models import Message, Report
from dear_stranger.store import MongoStore

from test_utils import make_settings


def _mock_client(documents=None, deleted_count=0):
    collection = MagicMock()
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=documents or [])
    collection.find.return_value = cursor
    collection.insert_one = AsyncMock()
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=deleted_count))

    client = MagicMock()
    client.__getitem__.return_value.__getitem__.return_value = collection
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.close = AsyncMock()
    return client, collection


class TestMongoStore:
    def test_list_messages_hides_object_id(self):
        client, collection = _mock_client(
            [{"uuid": "m1", "body": "hi", "timestamp": 10, "hue": "red", "senderUuid": "s1"}]
        )
        store = MongoStore("mongodb://db", "letters", client=client)

        messages = asyncio.run(store.list_messages())

        assert messages == [
            Message(uuid="m1", body="hi", timestamp=10, hue="red", sender_uuid="s1")
        ]
        collection.find.assert_called_once_with({}, {"_id": 0})
        client.__getitem__.assert_called_with("letters")
        client.__getitem__.return_value.__getitem__.assert_called_with("messages")

    def test_create_message_inserts_camel_case_document(self):
        client, collection = _mock_client()
        store = MongoStore("mongodb://db", "letters", client=client)
        message = Message(uuid="m1", body="hi", timestamp=10, hue="red", sender_uuid="s1")

        result = asyncio.run(store.create_message(message))

        assert result is message
        collection.insert_one.assert_awaited_once_with(
            {
                "uuid": "m1",
                "inResponseTo": None,
                "body": "hi",
                "timestamp": 10,
                "hue": "red",
                "senderUuid": "s1",
            }
        )

    def test_reports_round_through_reports_collection(self):
        client, collection = _mock_client([{"reporterUuid": "r1", "letterUuid": "m1"}])
        store = MongoStore("mongodb://db", "letters", client=client)

        asyncio.run(store.create_report(Report(reporter_uuid="r1", letter_uuid="m1")))
        reports = asyncio.run(store.list_reports())

        assert reports == [Report(reporter_uuid="r1", letter_uuid="m1")]
        client.__getitem__.return_value.__getitem__.assert_called_with("reports")
        collection.insert_one.assert_awaited_once_with(
            {"reporterUuid": "r1", "letterUuid": "m1", "explanation": None}
        )

    def test_delete_message_reports_whether_removed(self):
        client, collection = _mock_client(deleted_count=1)
        store = MongoStore("mongodb://db", "letters", client=client)

        assert asyncio.run(store.delete_message("m1")) is True
        collection.delete_one.assert_awaited_once_with({"uuid": "m1"})

    def test_delete_unknown_message_is_a_no_op(self):
        client, _ = _mock_client(deleted_count=0)
        store = MongoStore("mongodb://db", "letters", client=client)

        assert asyncio.run(store.delete_message("missing")) is False

    def test_driver_errors_become_storage_unavailable(self):
        client, collection = _mock_client()
        collection.find.return_value.to_list = AsyncMock(
            side_effect=ServerSelectionTimeoutError("no servers")
        )
        collection.insert_one = AsyncMock(side_effect=AutoReconnect("lost"))
        collection.delete_one = AsyncMock(side_effect=AutoReconnect("lost"))
        store = MongoStore("mongodb://db", "letters", client=client)

        with pytest.raises(StorageUnavailable, match="list messages"):
            asyncio.run(store.list_messages())
        with pytest.raises(StorageUnavailable, match="insert reports"):
            asyncio.run(store.create_report(Report(reporter_uuid="r1", letter_uuid="m1")))
        with pytest.raises(StorageUnavailable, match="delete messages"):
            asyncio.run(store.delete_message("m1"))

    def test_ping_failure_becomes_storage_unavailable(self):
        client, _ = _mock_client()
        client.admin.command = AsyncMock(side_effect=ServerSelectionTimeoutError("down"))
        store = MongoStore("mongodb://db", "letters", client=client)

        with pytest.raises(StorageUnavailable):
            asyncio.run(store.ping())

    def test_connect_creates_client_once(self):
        with patch("dear_stranger.store.AsyncMongoClient") as mongo_client:
            store = MongoStore("mongodb://db", "letters")
            asyncio.run(store.connect())
            asyncio.run(store.connect())
            assert store.connected is True
            mongo_client.assert_called_once_with("mongodb://db")

    def test_operations_connect_on_demand(self):
        client, _ = _mock_client()
        with patch("dear_stranger.store.AsyncMongoClient", return_value=client) as mongo_client:
            store = MongoStore("mongodb://db", "letters")
            assert asyncio.run(store.list_messages()) == []
            mongo_client.assert_called_once()

    def test_close_releases_client(self):
        client, _ = _mock_client()
        store = MongoStore("mongodb://db", "letters", client=client)

        asyncio.run(store.close())

        client.close.assert_awaited_once()
        assert store.connected is False

    def test_from_settings(self):
        store = MongoStore.from_settings(make_settings())
        assert store.connected is False

    def test_from_settings_requires_database(self):
        settings = make_settings()
        settings.db_name = None
        with pytest.raises(ValueError, match="MongoDB is not configured"):
            MongoStore.from_settings(settings)

    def test_unreadable_documents_are_skipped(self, caplog):
        client, _ = _mock_client(
            [
                {"uuid": "old", "timestamp": "yesterday", "body": "legacy"},
                {"uuid": "m2", "timestamp": "1000", "body": "form posted"},
            ]
        )
        store = MongoStore("mongodb://db", "letters", client=client)

        messages = asyncio.run(store.list_messages())

        assert [m.uuid for m in messages] == ["m2"]
        assert messages[0].timestamp == 1000
        assert "Skipping unreadable Message document 'old'" in caplog.text
