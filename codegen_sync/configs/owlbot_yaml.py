from __future__ import annotations

import re
from typing import Any, Iterable

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class InvalidOwlBotConfigError(ValueError):
    pass


class DeepCopyRegex(BaseModel):
    source: str
    dest: str


class OwlBotYaml(BaseModel):
    """Parsed contents of a downstream repository's .OwlBot.yaml."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    deep_copy_regex: list[DeepCopyRegex] = Field(default_factory=list, alias="deep-copy-regex")
    deep_remove_regex: list[str] = Field(default_factory=list, alias="deep-remove-regex")
    deep_preserve_regex: list[str] = Field(default_factory=list, alias="deep-preserve-regex")
    begin_after_commit_hash: str | None = Field(default=None, alias="begin-after-commit-hash")
    squash: bool | None = Field(default=None)

    @field_validator("begin_after_commit_hash", mode="before")
    @classmethod
    def _lenient_commit_hash(cls, value: Any) -> Any:
        # An unusable boundary means no boundary. All-digit short hashes load as ints.
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str):
            return value
        return None

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_owl_bot_yaml(text: str) -> OwlBotYaml:
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise InvalidOwlBotConfigError(f"Malformed .OwlBot.yaml: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidOwlBotConfigError(".OwlBot.yaml must contain a mapping at the top level")
    try:
        return OwlBotYaml.model_validate(raw)
    except ValidationError as exc:
        raise InvalidOwlBotConfigError(f"Invalid .OwlBot.yaml: {exc}") from exc


def front_match(pattern: str, path: str) -> bool:
    # Patterns are anchored at the start of the path, never at the end.
    return re.match(pattern, path) is not None


_JS_GROUP_REF = re.compile(r"\$(\d+)")


def to_python_replacement(dest: str) -> str:
    """Convert '$1'-style group references into Python's '\\g<1>' syntax."""
    escaped = dest.replace("\\", "\\\\")
    return _JS_GROUP_REF.sub(lambda m: f"\\g<{m.group(1)}>", escaped)


def owl_bot_yaml_matches(owl_bot_yaml: OwlBotYaml, touched_files: Iterable[str]) -> bool:
    files = list(touched_files)
    for copy_regex in owl_bot_yaml.deep_copy_regex:
        if any(front_match(copy_regex.source, f) for f in files):
            return True
    return False
