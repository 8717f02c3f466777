"""Pydantic models for the GitHub-style contents API."""

from __future__ import annotations

import base64
import binascii
from typing import Literal

from pydantic import BaseModel, ConfigDict, TypeAdapter


class ContentsBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CommitPayload(ContentsBaseModel):
    sha: str


class EntryPayload(ContentsBaseModel):
    type: Literal["file", "dir", "symlink", "submodule"]
    path: str
    name: str


class FilePayload(EntryPayload):
    encoding: str = "base64"
    content: str = ""

    def decoded(self) -> str:
        if self.encoding != "base64":
            raise ValueError(f"Unsupported content encoding: {self.encoding}")
        try:
            raw = base64.b64decode("".join(self.content.split()), validate=True)
        except binascii.Error as exc:
            raise ValueError(f"Invalid base64 content for {self.path}") from exc
        return raw.decode("utf-8")


DirectoryListing = TypeAdapter(list[EntryPayload])
