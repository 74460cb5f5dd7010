"""Claude access for the digest pipeline.

The pipeline only needs a ``complete(prompt) -> text`` callable;
:func:`make_completer` builds one on top of :func:`call_claude`.
Claude is reached through the Anthropic API when ``ANTHROPIC_API_KEY``
is set and through the ``claude -p`` command otherwise.
``DAYBRIEF_USE_CLI=1`` forces the command.
"""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from collections.abc import Callable
from typing import Any

import anthropic

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """A Claude call failed or came back empty."""


MODEL_ALIASES: dict[str, str] = {
    "sonnet": "claude-sonnet-4-6",
    "haiku": "claude-haiku-4-5-20251001",
    "opus": "claude-opus-4-6",
}

DEFAULT_MODEL = MODEL_ALIASES["sonnet"]

# Large enough for the reduce script (650 words) with headroom
_MAX_OUTPUT_TOKENS = 4000


def resolve_model(model: str | None) -> str:
    """Map ``sonnet``/``haiku``/``opus`` to model IDs; other names pass through."""
    if not model:
        return DEFAULT_MODEL
    return MODEL_ALIASES.get(model, model)


def _complete_via_api(
    system_prompt: str,
    user_prompt: str,
    *,
    api_key: str,
    model: str | None,
    timeout: int,
    label: str,
) -> str:
    client = anthropic.Anthropic(api_key=api_key, timeout=timeout)
    request: dict[str, object] = {
        "model": resolve_model(model),
        "max_tokens": _MAX_OUTPUT_TOKENS,
        "messages": [{"role": "user", "content": user_prompt}],
    }
    if system_prompt.strip():
        request["system"] = system_prompt

    logger.debug("Anthropic API call: model=%s label=%s", request["model"], label)
    response = client.messages.create(**request)  # type: ignore[arg-type]

    text = "".join(block.text for block in response.content if block.type == "text").strip()
    if not text:
        raise LLMError(f"Anthropic API returned an empty response (label={label})")
    return text


def _complete_via_cli(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str | None,
    timeout: int,
    label: str,
) -> str:
    command = ["claude", "-p"]
    if model:
        command += ["--model", model]
    prompt = f"{system_prompt}\n\n{user_prompt}" if system_prompt.strip() else user_prompt
    # A CLAUDECODE marker inherited from a parent session blocks nested runs
    env = {key: value for key, value in os.environ.items() if key != "CLAUDECODE"}

    logger.debug("claude -p call: label=%s", label)
    try:
        proc = subprocess.run(
            command,
            input=prompt,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )
    except FileNotFoundError as exc:
        raise LLMError(f"'claude' executable not found on PATH (label={label})") from exc
    except subprocess.TimeoutExpired as exc:
        raise LLMError(f"claude -p timed out after {timeout}s (label={label})") from exc

    if proc.returncode != 0:
        raise LLMError(
            f"claude -p failed (exit {proc.returncode}, label={label}): {proc.stderr[:500]}"
        )
    text = proc.stdout.strip()
    if not text:
        raise LLMError(f"claude -p returned an empty response (label={label})")
    return text


def call_claude(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str | None = None,
    timeout: int = 300,
    label: str = "digest",
) -> str:
    """Send one prompt to Claude and return the stripped reply.

    Args:
        system_prompt: System instructions; may be empty.
        user_prompt: The prompt text.
        model: Alias or model ID; ``None`` uses :data:`DEFAULT_MODEL`.
        timeout: Seconds before the call is abandoned.
        label: Short tag used in logs and error messages.

    Raises:
        LLMError: The backend failed or returned nothing.
    """
    api_key = os.environ.get("ANTHROPIC_API_KEY", "").strip()
    force_cli = os.environ.get("DAYBRIEF_USE_CLI", "").strip() == "1"

    if not api_key or force_cli:
        return _complete_via_cli(
            system_prompt, user_prompt, model=model, timeout=timeout, label=label
        )
    try:
        return _complete_via_api(
            system_prompt,
            user_prompt,
            api_key=api_key,
            model=model,
            timeout=timeout,
            label=label,
        )
    except anthropic.APIError as exc:
        raise LLMError(f"Anthropic API failed (label={label}): {exc}") from exc


def make_completer(
    *,
    system_prompt: str = "",
    model: str | None = None,
    timeout: int = 300,
    label: str = "digest",
) -> Callable[[str], str]:
    """Bind ``call_claude`` into a ``complete(prompt) -> text`` callable.

    The returned callable holds no mutable state and is safe to call
    from several worker threads at once.
    """

    def complete(prompt: str) -> str:
        return call_claude(system_prompt, prompt, model=model, timeout=timeout, label=label)

    return complete


_FENCED_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
_DELIMITERS = (("{", "}"), ("[", "]"))


def strip_json_fences(text: str) -> str:
    """Cut the JSON payload out of a model reply.

    A fenced block wins. Otherwise the payload runs from the earliest
    ``{`` or ``[`` to the last matching closer; text with neither is
    returned unchanged.
    """
    text = text.strip()
    fenced = _FENCED_RE.search(text)
    if fenced:
        return fenced.group(1).strip()

    openings = sorted(
        (text.find(opener), closer) for opener, closer in _DELIMITERS if opener in text
    )
    for start, closer in openings:
        end = text.rfind(closer)
        if end > start:
            return text[start : end + 1]
    return text


def load_json_output(text: str) -> Any:
    """Decode the JSON payload of a model reply.

    Raises:
        json.JSONDecodeError: If no valid JSON can be recovered.
    """
    return json.loads(strip_json_fences(text))
