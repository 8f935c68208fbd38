# header_rules/schemas.py
# Summary: pydantic models of the rules file; to_config() builds the immutable engine Config.

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from header_rules.engine.ruleset import Config, HeaderChange, Rule, RuleConfigError


class AppBaseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class HeaderChangeDoc(AppBaseModel):
    header: str
    req: bool = False
    value: str = ""
    replace: Optional[str] = None
    sep: str = ""
    action: str = "set"

    @field_validator("value", "sep", "action", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    def to_change(self) -> HeaderChange:
        return HeaderChange(
            header=self.header,
            action=self.action,
            value=self.value,
            replace=self.replace,
            separator=self.sep,
            req=self.req,
        )


class RuleDoc(AppBaseModel):
    name: str = ""
    regexp: str
    header_changes: List[HeaderChangeDoc] = Field(default_factory=list, alias="headerChanges")


class RulesDocument(AppBaseModel):
    rules: List[RuleDoc] = Field(default_factory=list)
    default_headers: List[HeaderChangeDoc] = Field(default_factory=list, alias="defaultHeaders")

    def to_config(self) -> Config:
        """Compile every pattern once; any bad expression fails the whole Config."""
        rules: List[Rule] = []
        for idx, doc in enumerate(self.rules):
            name = doc.name.strip() or f"rule[{idx}]"
            try:
                changes = [c.to_change() for c in doc.header_changes]
            except RuleConfigError as exc:
                raise RuleConfigError(f"rule {name!r}: {exc}") from exc
            rules.append(Rule(name=name, pattern=doc.regexp, changes=tuple(changes)))
        try:
            defaults = [c.to_change() for c in self.default_headers]
        except RuleConfigError as exc:
            raise RuleConfigError(f"defaultHeaders: {exc}") from exc
        return Config(rules=tuple(rules), default_changes=tuple(defaults))


def config_from_dict(data: Any) -> Config:
    return RulesDocument.model_validate(data or {}).to_config()


__all__ = ["HeaderChangeDoc", "RuleDoc", "RulesDocument", "config_from_dict"]
