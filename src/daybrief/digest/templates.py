"""Strict prompt template rendering."""

from __future__ import annotations

import string
from collections.abc import Collection, Mapping

from daybrief.digest.errors import PipelineStage, PromptTemplateError

_FORMATTER = string.Formatter()


class TemplateError(ValueError):
    """Raised when a template cannot be filled from the given fields."""


def template_fields(template: str) -> set[str]:
    """Return the placeholder names used by ``template``.

    Raises:
        TemplateError: On malformed braces or positional ``{}`` fields.
    """
    names: set[str] = set()
    try:
        parsed = list(_FORMATTER.parse(template))
    except ValueError as exc:
        raise TemplateError(f"Malformed template: {exc}") from exc

    for _literal, field_name, _spec, _conversion in parsed:
        if field_name is None:
            continue
        # "{a.b}" and "{a[0]}" both look up "a"
        base = field_name.split(".", 1)[0].split("[", 1)[0]
        if not base or base.isdigit():
            raise TemplateError(f"Positional placeholder {{{field_name}}} is not allowed")
        names.add(base)
    return names


def check_template(template: str, allowed: Collection[str]) -> None:
    """Fail if ``template`` uses a placeholder outside ``allowed``.

    A template may leave out any of the allowed fields.
    """
    unknown = sorted(template_fields(template) - set(allowed))
    if unknown:
        raise TemplateError(f"Unknown template placeholders: {', '.join(unknown)}")


def render_template(template: str, fields: Mapping[str, object]) -> str:
    """Fill ``{name}`` placeholders in ``template`` from ``fields``.

    Extra fields are ignored. A placeholder with no matching field fails
    loudly instead of leaving the braces in the prompt.

    Args:
        template: Template text; literal braces are written ``{{`` / ``}}``.
        fields: Values for the placeholders.

    Returns:
        The rendered text.

    Raises:
        TemplateError: If a placeholder has no corresponding field, or a
            field lookup or format spec does not apply to its value.
    """
    missing = sorted(template_fields(template) - set(fields))
    if missing:
        raise TemplateError(f"Template placeholders without a value: {', '.join(missing)}")
    try:
        return template.format_map(fields)
    except (AttributeError, IndexError, KeyError, ValueError) as exc:
        raise TemplateError(f"Template could not be rendered: {exc}") from exc


def check_stage_template(
    template: str, allowed: Collection[str], stage: PipelineStage
) -> str:
    """Validate the template a stage will render and return it.

    Raises:
        PromptTemplateError: The template uses a field the stage does not supply.
    """
    try:
        check_template(template, allowed)
    except TemplateError as exc:
        raise PromptTemplateError(str(exc), stage=stage, identifier="template") from exc
    return template


def render_stage_template(
    template: str, fields: Mapping[str, object], stage: PipelineStage
) -> str:
    """Render a stage prompt, reporting failures as that stage's error.

    Raises:
        PromptTemplateError: The template could not be filled.
    """
    try:
        return render_template(template, fields)
    except TemplateError as exc:
        raise PromptTemplateError(str(exc), stage=stage, identifier="template") from exc
