"""Tests for JSON (de)serialization and the type strategy."""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from uuid import UUID

import pytest
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from recorder_proxy.json_codec import (
    JsonSerializerStrategy,
    deserialize,
    serialize,
    zero_value,
)
from recorder_proxy.models import SimpleResult


class Channel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel_id: UUID = Field(alias="channelId")
    display_name: str = Field(alias="displayName")
    logical_channel_number: int | None = Field(default=None, alias="logicalChannelNumber")


class Schedule(ABC):
    """Abstract result type; decoded through the strategy registry."""

    @abstractmethod
    def describe(self) -> str: ...


class TvSchedule(BaseModel):
    name: str
    is_active: bool = Field(alias="isActive")

    def describe(self) -> str:
        return self.name


class Recording(BaseModel):
    title: str


class TvRecording(Recording):
    channel: str


CHANNEL = Channel(
    channel_id=UUID("0f5b1c2d-3e4f-4a5b-8c6d-7e8f9a0b1c2d"),
    display_name="BBC One",
    logical_channel_number=1,
)


class TestSerialize:
    def test_model_uses_aliases(self) -> None:
        data = json.loads(serialize(CHANNEL))
        assert data == {
            "channelId": "0f5b1c2d-3e4f-4a5b-8c6d-7e8f9a0b1c2d",
            "displayName": "BBC One",
            "logicalChannelNumber": 1,
        }

    def test_strategy_without_aliases(self) -> None:
        data = json.loads(serialize(CHANNEL, JsonSerializerStrategy(by_alias=False)))
        assert "display_name" in data
        assert "displayName" not in data

    def test_returns_utf8_bytes(self) -> None:
        assert isinstance(serialize({"a": 1}), bytes)

    def test_plain_dict_with_datetime(self) -> None:
        data = json.loads(serialize({"start": datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc)}))
        assert data["start"].startswith("2024-01-01T20:00:00")

    def test_list_of_models(self) -> None:
        data = json.loads(serialize([CHANNEL, CHANNEL]))
        assert len(data) == 2
        assert data[0]["displayName"] == "BBC One"


class TestDeserialize:
    def test_round_trip_model(self) -> None:
        assert deserialize(serialize(CHANNEL), Channel) == CHANNEL

    def test_round_trip_list(self) -> None:
        assert deserialize(serialize([CHANNEL]), list[Channel]) == [CHANNEL]

    def test_round_trip_scalar_dict(self) -> None:
        value = {"a": 1, "b": [1, 2], "c": None}
        assert deserialize(serialize(value), dict) == value

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(ValidationError):
            deserialize("{not json", Channel)

    def test_type_mismatch_raises(self) -> None:
        with pytest.raises(ValidationError):
            deserialize('{"channelId": "nope"}', Channel)


class TestZeroValue:
    @pytest.mark.parametrize(
        "result_type, expected",
        [(int, 0), (float, 0.0), (bool, False), (str, None), (Channel, None), (list[int], None)],
    )
    def test_zero_values(self, result_type, expected) -> None:
        assert zero_value(result_type) == expected

    def test_empty_string_gives_zero_value(self) -> None:
        assert deserialize("", int) == 0

    def test_empty_bytes_gives_none_for_models(self) -> None:
        assert deserialize(b"", Channel) is None

    def test_none_content(self) -> None:
        assert deserialize(None, list[Channel]) is None

    def test_whitespace_only(self) -> None:
        assert deserialize("  \r\n", bool) is False


class TestJsonSerializerStrategy:
    @pytest.fixture
    def strategy(self) -> JsonSerializerStrategy:
        strategy = JsonSerializerStrategy()
        strategy.register(Schedule, TvSchedule)
        return strategy

    def test_resolve_registered_type(self, strategy: JsonSerializerStrategy) -> None:
        assert strategy.resolve(Schedule) is TvSchedule

    def test_resolve_unregistered_type_unchanged(self, strategy: JsonSerializerStrategy) -> None:
        assert strategy.resolve(Channel) is Channel
        assert strategy.resolve(list[Channel]) == list[Channel]

    def test_resolve_inside_list(self, strategy: JsonSerializerStrategy) -> None:
        assert strategy.resolve(list[Schedule]) == list[TvSchedule]

    def test_resolve_inside_dict(self, strategy: JsonSerializerStrategy) -> None:
        assert strategy.resolve(dict[str, Schedule]) == dict[str, TvSchedule]

    def test_decode_abstract_type(self, strategy: JsonSerializerStrategy) -> None:
        schedule = deserialize('{"name": "Evening news", "isActive": true}', Schedule, strategy)
        assert isinstance(schedule, TvSchedule)
        assert schedule.describe() == "Evening news"

    def test_decode_optional_abstract_type(self, strategy: JsonSerializerStrategy) -> None:
        assert deserialize("null", Schedule | None, strategy) is None
        schedule = deserialize('{"name": "x", "isActive": false}', Schedule | None, strategy)
        assert isinstance(schedule, TvSchedule)

    def test_decode_envelope_with_registered_subtype(self) -> None:
        """Registered base models are swapped inside parametrized envelopes."""
        strategy = JsonSerializerStrategy()
        strategy.register(Recording, TvRecording)
        envelope = deserialize(
            '{"result": {"title": "Film", "channel": "BBC Two"}, "errorMessage": null}',
            SimpleResult[Recording],
            strategy,
        )
        assert isinstance(envelope.result, TvRecording)
        assert envelope.result.channel == "BBC Two"
        assert envelope.error_message is None
