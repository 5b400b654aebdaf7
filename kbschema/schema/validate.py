"""
Record validation against a linked class model.

Provides:
- validate_record: Cast and check a record, returning every failure
- format_record: Same, raising ValidationError when anything failed

Validation is a pure function of (model, record): the input record is never
modified and no registry state is touched, so it is safe to call from any
number of threads.

Example:
    >>> disease = registry["Disease"]
    >>> record, failures = validate_record(
    ...     disease, {"name": "Cancer", "sourceId": "DOID:162", "source": "#13:1"}
    ... )
    >>> failures, record["displayName"]
    ([], 'cancer [DOID:162]')
    >>> format_record(disease, {})
    Traceback (most recent call last):
    ValidationError: [Disease] 3 invalid attribute(s): ...
"""

from __future__ import annotations

from collections.abc import Mapping
from difflib import get_close_matches
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ..errors import (
    AttributeFailure,
    CastError,
    FailureKind,
    UnknownClassError,
    ValidationError,
)
from .util import cast_to_rid

if TYPE_CHECKING:
    from .model import ClassModel

EDGE_ENDPOINTS = ("out", "in")


def validate_record(
    model: ClassModel,
    record: Mapping[str, Any],
    *,
    is_update: bool = False,
    drop_extra: bool = True,
    add_defaults: bool = True,
    ignore_extra: bool = False,
    ignore_missing: bool = False,
    path: str = "",
) -> tuple[dict[str, Any], list[AttributeFailure]]:
    """Cast and check a record against a class model.

    Args:
        model: Linked class model
        record: Input attribute mapping (not modified)
        is_update: Record is an update; read-only properties are rejected
        drop_extra: Leave attributes the class does not define out of the
            result instead of reporting them
        add_defaults: Fill absent properties from their defaults
        ignore_extra: Do not report undefined attributes
        ignore_missing: Do not report absent mandatory properties
        path: Attribute path prefix for embedded records

    Returns:
        Tuple of (formatted_record, list_of_failures)
    """
    properties = model.effective_properties()
    prefix = f"{path}." if path else ""
    failures: list[AttributeFailure] = []
    formatted: dict[str, Any] = {} if drop_extra else dict(record)
    view = MappingProxyType(formatted)

    if not drop_extra and not ignore_extra:
        for attr in record:
            if attr in properties or (model.is_edge and attr in EDGE_ENDPOINTS):
                continue
            message = f"[{model.name}] unexpected attribute: {prefix}{attr}"
            suggestions = get_close_matches(attr, list(properties), n=3)
            if suggestions:
                message += f". Did you mean: {', '.join(suggestions)}?"
            failures.append(
                AttributeFailure(FailureKind.UNEXPECTED, f"{prefix}{attr}", record[attr], message)
            )

    if model.is_edge:
        for endpoint in EDGE_ENDPOINTS:
            if endpoint in properties:
                continue
            if record.get(endpoint) is not None:
                try:
                    formatted[endpoint] = cast_to_rid(record[endpoint])
                except CastError as err:
                    formatted.pop(endpoint, None)
                    failures.append(
                        AttributeFailure(
                            FailureKind.CAST,
                            f"{prefix}{endpoint}",
                            record[endpoint],
                            f"Failed casting {prefix}{endpoint}: {err.message}",
                        )
                    )
            elif not ignore_missing:
                failures.append(
                    AttributeFailure(
                        FailureKind.MISSING,
                        f"{prefix}{endpoint}",
                        None,
                        f"[{model.name}] missing required attribute {prefix}{endpoint}",
                    )
                )

    for prop in properties.values():
        key = prop.name
        attr_path = f"{prefix}{key}"

        if key in record:
            if is_update and prop.read_only:
                formatted.pop(key, None)
                failures.append(
                    AttributeFailure(
                        FailureKind.READ_ONLY,
                        attr_path,
                        record[key],
                        f"[{model.name}] cannot update the read-only attribute {attr_path}",
                    )
                )
                continue
            value = record[key]
        elif add_defaults and prop.has_default and not prop.generation_dependencies:
            try:
                value = prop.default_value(view)
            except Exception as err:
                failures.append(
                    AttributeFailure(
                        FailureKind.DEFAULT,
                        attr_path,
                        None,
                        f"[{model.name}] could not generate default for {attr_path}: {err}",
                    )
                )
                continue
        else:
            deferred = add_defaults and prop.generation_dependencies and prop.has_default
            if prop.mandatory and not prop.generated and not deferred and not ignore_missing:
                if prop.nullable:
                    formatted[key] = None
                else:
                    failures.append(
                        AttributeFailure(
                            FailureKind.MISSING,
                            attr_path,
                            None,
                            f"[{model.name}] missing required attribute {attr_path}",
                        )
                    )
            continue

        cast_value, prop_failures = prop.validate(value, attr_path)
        if prop_failures:
            formatted.pop(key, None)
            failures.extend(prop_failures)
        else:
            formatted[key] = cast_value

    for key, value in list(formatted.items()):
        prop = properties.get(key)
        if prop is None or value is None or not prop.type.is_embedded or prop.linked_class is None:
            continue
        if prop.iterable:
            items = [(f"{prefix}{key}.{i}", item) for i, item in enumerate(value)]
        else:
            items = [(f"{prefix}{key}", value)]
        results = []
        for item_path, item in items:
            embedded, embedded_failures = _validate_embedded(
                prop.linked_class, item, item_path, is_update=is_update, ignore_missing=ignore_missing
            )
            results.append(embedded)
            failures.extend(embedded_failures)
        formatted[key] = results if prop.iterable else results[0]

    if add_defaults:
        for prop in properties.values():
            if not (prop.generation_dependencies and prop.has_default):
                continue
            if prop.name in record and not prop.generated:
                continue
            attr_path = f"{prefix}{prop.name}"
            try:
                generated = prop.default_value(MappingProxyType(dict(formatted)))
            except Exception as err:
                failures.append(
                    AttributeFailure(
                        FailureKind.DEFAULT,
                        attr_path,
                        None,
                        f"[{model.name}] could not generate default for {attr_path}: {err}",
                    )
                )
                continue
            cast_value, prop_failures = prop.validate(generated, attr_path)
            failures.extend(prop_failures)
            if not prop_failures:
                formatted[prop.name] = cast_value

    return formatted, failures


def _validate_embedded(
    linked: ClassModel, value: Any, path: str, *, is_update: bool, ignore_missing: bool
) -> tuple[Any, list[AttributeFailure]]:
    if not isinstance(value, Mapping):
        return value, [
            AttributeFailure(
                FailureKind.LINKED_CLASS,
                path,
                value,
                f"The {path} property must be an embedded {linked.name} record",
            )
        ]
    target = linked
    class_name = value.get("@class")
    if class_name and class_name != linked.name:
        try:
            target = linked.subclass_model(class_name)
        except UnknownClassError:
            return value, [
                AttributeFailure(
                    FailureKind.LINKED_CLASS,
                    path,
                    class_name,
                    f"A linked class was defined ({linked.name}) but the embedded record "
                    f"at {path} is not of that class or its descendants: {class_name}",
                )
            ]
    return validate_record(
        target, value, is_update=is_update, ignore_missing=ignore_missing, path=path
    )


def format_record(model: ClassModel, record: Mapping[str, Any], **options: Any) -> dict[str, Any]:
    """Cast and check a record, raising when any attribute fails.

    Accepts the same keyword options as validate_record.

    Raises:
        ValidationError: Holding every failure found
    """
    formatted, failures = validate_record(model, record, **options)
    if failures:
        details = "; ".join(failure.message for failure in failures)
        raise ValidationError(
            f"[{model.name}] {len(failures)} invalid attribute(s): {details}",
            class_name=model.name,
            failures=failures,
        )
    return formatted
