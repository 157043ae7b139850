"""Projection combinators.

Derive operation-specific models from a canonical model without restating
field types. Every derived field keeps the source field's annotation and its
``Annotated`` metadata (length bounds, patterns, collection invariants), so
tightening a canonical constraint tightens every projection with it.

Only field definitions travel. Model-level validators of the source model do
not; a projection that needs its own refinements supplies them through
``base``.

Example:
    ```python
    CreatePatientDto = omit(Patient, "id", "version", name="CreatePatientDto",
                            optional={"patient_number"})
    UpdatePatientDto = partial(Patient, "name", "notes", name="UpdatePatientDto")
    ```
"""

from typing import Annotated, Any, Iterable, Optional

from pydantic import BaseModel, Field, create_model
from pydantic.fields import FieldInfo

from patient_contracts.domain.primitives import ContractModel

FieldDefinition = tuple[Any, FieldInfo]


def _annotation_of(info: FieldInfo) -> Any:
    if not info.metadata:
        return info.annotation
    return Annotated[(info.annotation, *info.metadata)]


def derive_field(
    info: FieldInfo,
    *,
    required: Optional[bool] = None,
    nullable: bool = False,
) -> FieldDefinition:
    """Copy one field definition, optionally changing its optionality.

    Parameters:
        info: Source field
        required: True forces the field required, False makes it optional with
            an unvalidated ``None`` default (absent means "not provided";
            explicit null is still rejected unless ``nullable``), None keeps
            the source's requiredness and default
        nullable: Accept an explicit ``null`` as a value

    Returns:
        FieldDefinition: ``(annotation, FieldInfo)`` pair for ``create_model``
    """
    annotation = _annotation_of(info)
    if nullable:
        annotation = Optional[annotation]
    description = info.description

    if required is True:
        return annotation, Field(..., description=description)
    if required is False:
        return annotation, Field(default=None, description=description)
    if info.default_factory is not None:
        return annotation, Field(default_factory=info.default_factory, description=description)
    if info.is_required():
        return annotation, Field(..., description=description)
    return annotation, Field(default=info.default, description=description)


def field_of(model: type[BaseModel], field_name: str, **options: Any) -> FieldDefinition:
    """Return a copy of ``model``'s field, for use with ``extend``."""
    return derive_field(model.model_fields[field_name], **options)


def _check_names(model: type[BaseModel], names: Iterable[str]) -> None:
    unknown = sorted(set(names) - set(model.model_fields))
    if unknown:
        raise ValueError(f"{model.__name__} has no fields {unknown}")


def pick(
    model: type[BaseModel],
    *names: str,
    name: str,
    base: type[BaseModel] = ContractModel,
    optional: Iterable[str] = (),
    nullable: Iterable[str] = (),
    required: Iterable[str] = (),
    all_optional: bool = False,
    doc: Optional[str] = None,
) -> type[BaseModel]:
    """Build a model holding only ``names`` from ``model``.

    Parameters:
        model: Canonical model to project
        names: Field names to keep, in output order
        name: Class name of the projection
        base: Base class carrying the projection's own validators and config
        optional: Fields to make optional
        nullable: Fields that accept explicit ``null``
        required: Fields to make required, overriding ``all_optional``
        all_optional: Make every kept field optional (partial projection)
        doc: Docstring of the generated class

    Returns:
        type[BaseModel]: The generated projection class

    Raises:
        ValueError: If a name is not a field of ``model``
    """
    optional, nullable, required = set(optional), set(nullable), set(required)
    _check_names(model, [*names, *optional, *nullable, *required])

    definitions = {}
    for field_name in names:
        if field_name in required:
            requirement = True
        elif all_optional or field_name in optional:
            requirement = False
        else:
            requirement = None
        definitions[field_name] = derive_field(
            model.model_fields[field_name],
            required=requirement,
            nullable=field_name in nullable,
        )

    return create_model(
        name,
        __base__=base,
        __module__=base.__module__,
        __doc__=doc or f"Projection of {model.__name__}.",
        **definitions,
    )


def omit(model: type[BaseModel], *names: str, name: str, **options: Any) -> type[BaseModel]:
    """Build a model holding every field of ``model`` except ``names``."""
    _check_names(model, names)
    kept = [field_name for field_name in model.model_fields if field_name not in names]
    return pick(model, *kept, name=name, **options)


def partial(model: type[BaseModel], *names: str, name: str, **options: Any) -> type[BaseModel]:
    """Build a patch model: every picked field optional.

    With no ``names`` every field of ``model`` is picked.
    """
    picked = names or tuple(model.model_fields)
    return pick(model, *picked, name=name, all_optional=True, **options)


def extend(
    model: type[BaseModel],
    *,
    name: str,
    doc: Optional[str] = None,
    **fields: Any,
) -> type[BaseModel]:
    """Subclass ``model`` with extra fields.

    Each value in ``fields`` is an annotation or an ``(annotation, FieldInfo)``
    pair, typically obtained from ``field_of``. A bare annotation declares a
    required field.
    """
    definitions = {
        field_name: definition if isinstance(definition, tuple) else (definition, ...)
        for field_name, definition in fields.items()
    }
    return create_model(
        name,
        __base__=model,
        __module__=model.__module__,
        __doc__=doc or model.__doc__,
        **definitions,
    )
