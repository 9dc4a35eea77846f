"""Unit tests for base domain models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from deployer.domain.models.base import (
    generate_id,
    PersistedModel,
    utc_now,
    ValueObject,
)


class TestGenerateId:
    def test_returns_string(self) -> None:
        assert isinstance(generate_id(), str)

    def test_unique(self) -> None:
        ids = {generate_id() for _ in range(100)}
        assert len(ids) == 100


class TestUtcNow:
    def test_returns_aware_datetime(self) -> None:
        now = utc_now()
        assert now.tzinfo is not None


class TestPersistedModel:
    class Sample(PersistedModel):
        backup_location: str | None = None

    def test_dumps_camel_case(self) -> None:
        sample = self.Sample(backup_location="s3://b/1")
        assert sample.model_dump(by_alias=True) == {"backupLocation": "s3://b/1"}

    def test_accepts_either_name(self) -> None:
        assert self.Sample.model_validate({"backupLocation": "x"}).backup_location == "x"
        assert self.Sample(backup_location="y").backup_location == "y"

    def test_rejects_unknown_keys(self) -> None:
        with pytest.raises(ValidationError):
            self.Sample.model_validate({"bogus": 1})


class TestValueObject:
    def test_immutable(self) -> None:
        class Pointer(ValueObject):
            version: str

        p = Pointer(version="v1")
        with pytest.raises(ValidationError):
            p.version = "v2"  # type: ignore[misc]
