"""Metadata type definitions.

These pydantic models give a typed view over the free-form attribute
metadata held by the metadata model (see stratum.config.metadata). The
metadata itself stays a plain nested dict so that layers can merge it;
models are built on demand when a caller needs typed access.

Design decision: All types use `extra="allow"` so application-specific
metadata keys survive validation.
"""

import re as _re
import typing as _typing

import pydantic as _pydantic

# =============================================================================
# Base class with introspection
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for metadata types.

    Unknown fields are preserved rather than dropped so applications can
    attach their own hints to attribute metadata.
    """

    model_config = _pydantic.ConfigDict(extra="allow", populate_by_name=True)

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Return fields that were provided but not in the schema.

        Returns:
            Dict of field_name → value for all unrecognized fields.
        """
        return dict(self.model_extra) if self.model_extra else {}

    def has_extra_fields(self) -> bool:
        """Check if this model has any unrecognized fields."""
        return bool(self.model_extra)


# =============================================================================
# Attribute metadata
# =============================================================================


class SetupHints(ConfigBase):
    """Hints for an interactive setup flow. Consumed by external tooling only."""

    ask_step: int | None = None
    ask_sort: int | None = None
    list_values: dict[str, _typing.Any] | None = None
    default_value: _typing.Any = None


class AttributeMeta(ConfigBase):
    """
    Metadata for one attribute in one section.

    Loaded from the "sections" tree of application defaults, e.g.:

        sections:
          account:
            provider:
              account_exclusive: true
              desc: "Backend provider"
    """

    section: str
    key: str
    readonly: bool = False
    account_exclusive: bool = False
    default_value: _typing.Any = None
    validate_: str | None = _pydantic.Field(default=None, alias="validate")
    """Regular expression a value must match."""

    desc: str | None = None
    setup: SetupHints | None = None

    @classmethod
    def from_meta(
        cls,
        section: str,
        key: str,
        meta: _typing.Mapping[str, _typing.Any] | None,
    ) -> "AttributeMeta":
        """Build from a raw metadata dict, tolerating None for "declared, no options"."""
        data = dict(meta or {})
        data.pop("section", None)
        data.pop("key", None)
        return cls(section=section, key=key, **data)

    def accepts(self, value: _typing.Any) -> bool:
        """True if value satisfies the validation rule (or there is none)."""
        if self.validate_ is None or value is None:
            return True
        return _re.fullmatch(self.validate_, str(value)) is not None
