import json

import pytest
from pydantic import ValidationError

from reporting.run_metadata import RunMetadata, RunMetadataStore

META = RunMetadata(thread_id="111", channel_id="222", header_message_id="333", suite_label="Suite: PROD | smoke")


def test_write_uses_camel_case_keys(tmp_path):
    store = RunMetadataStore(tmp_path / "meta" / ".discord-run.json")
    path = store.write(META)

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "threadId": "111",
        "channelId": "222",
        "headerMessageId": "333",
        "suiteLabel": "Suite: PROD | smoke",
    }
    assert not path.with_suffix(".tmp").exists()


@pytest.mark.asyncio
async def test_round_trip_and_clear(tmp_path):
    store = RunMetadataStore(tmp_path / ".discord-run.json")
    store.write(META)

    assert await store.read() == META
    store.clear()
    store.clear()
    assert await store.read() is None


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "{not json", '{"threadId": "1"}', "[]"])
async def test_malformed_file_reads_as_missing(tmp_path, content):
    path = tmp_path / ".discord-run.json"
    path.write_text(content, encoding="utf-8")

    assert await RunMetadataStore(path).read() is None


@pytest.mark.asyncio
async def test_undecodable_file_reads_as_missing(tmp_path):
    path = tmp_path / ".discord-run.json"
    path.write_bytes(b"\xff\xfe{bad")

    assert await RunMetadataStore(path).read() is None


def test_metadata_is_immutable():
    with pytest.raises(ValidationError):
        META.thread_id = "other"
