"""Content model adapter contract.

The host content-management system owns templates and their field
definitions. The reference scanner only needs to know which fields hold
blob references, so the host is consumed through the ContentModel protocol.

JsonContentModel loads template definitions from a JSON document, for the
CLI and for deployments that export their template catalogue:

    {
      "templates": [
        {
          "id": "{76036F5E-CBCE-46D1-AF0A-4143F9B557AA}",
          "name": "Unversioned Image",
          "fields": [
            {"id": "{40E50ED9-BA07-4702-992E-A912738D32DC}", "name": "Blob", "is_blob": true}
          ]
        }
      ]
    }
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ContentModelError(Exception):
    """Raised when a content model definition cannot be loaded."""

    pass


class TemplateField(BaseModel):
    """A field definition on a template.

    Attributes:
        id: Field identifier, matching FieldId in the field-value tables.
        name: Field name, for diagnostics only.
        is_blob: True when the field's stored value is a blob identifier.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: uuid.UUID
    name: str = ""
    is_blob: bool = False


class Template(BaseModel):
    """A content template and its field definitions."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: uuid.UUID
    name: str = ""
    fields: tuple[TemplateField, ...] = ()


class _TemplateCatalogue(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    templates: tuple[Template, ...] = Field(default=())


@runtime_checkable
class ContentModel(Protocol):
    """Read-only view of the host's template definitions."""

    def get_templates(self) -> Iterable[Template]:
        """Return every template known to the content database."""
        ...


def iter_blob_fields(content_model: ContentModel) -> Iterator[TemplateField]:
    """Yield each blob-typed field once, across all templates.

    Fields shared by several templates (inherited sections) are yielded
    only for their first occurrence.
    """
    seen: set[uuid.UUID] = set()
    for template in content_model.get_templates():
        for field in template.fields:
            if field.is_blob and field.id not in seen:
                seen.add(field.id)
                yield field


class StaticContentModel:
    """ContentModel over a fixed list of templates."""

    def __init__(self, templates: Iterable[Template]) -> None:
        self._templates = tuple(templates)

    def get_templates(self) -> tuple[Template, ...]:
        return self._templates


class JsonContentModel(StaticContentModel):
    """ContentModel loaded from a JSON template catalogue."""

    @classmethod
    def from_dict(cls, data: object) -> JsonContentModel:
        """Build from an already-parsed catalogue.

        Raises:
            ContentModelError: If the catalogue does not match the expected shape.
        """
        try:
            catalogue = _TemplateCatalogue.model_validate(data)
        except ValidationError as e:
            raise ContentModelError(f"Invalid content model: {e}") from e
        return cls(catalogue.templates)

    @classmethod
    def from_file(cls, path: str | Path) -> JsonContentModel:
        """Load a catalogue from a JSON file.

        Raises:
            ContentModelError: If the file cannot be read or parsed.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ContentModelError(f"Content model file not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise ContentModelError(f"Cannot read content model {path}: {e}") from e
        return cls.from_dict(data)
