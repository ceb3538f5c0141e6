"""Helpers that make trap names and label keys easier to read."""

from __future__ import annotations

import os
from collections.abc import Mapping

_TRAP_SUFFIX = "Trap"


def find_label_prefix(labels: Mapping[str, str]) -> str:
    """Return the longest prefix shared by every label key."""
    if not labels:
        return ""
    return os.path.commonprefix(sorted(labels))


def find_label_suffix(labels: Mapping[str, str]) -> str:
    """Return the longest suffix shared by every label key."""
    if not labels:
        return ""
    return os.path.commonprefix([key[::-1] for key in sorted(labels)])[::-1]


def _trim_start(text: str, affix: str) -> str:
    if affix:
        while text.startswith(affix):
            text = text[len(affix):]
    return text


def _trim_end(text: str, affix: str) -> str:
    if affix:
        while text.endswith(affix):
            text = text[: -len(affix)]
    return text


def truncate_labels_prefix(labels: Mapping[str, str]) -> dict[str, str]:
    """Return the labels with the shared key prefix removed from every key.

    Repeated occurrences of the prefix are removed as well. Keys that collide
    after trimming keep the value of the last key in sorted order.
    """
    prefix = find_label_prefix(labels)
    trimmed = {_trim_start(key, prefix): labels[key] for key in sorted(labels)}
    return dict(sorted(trimmed.items()))


def truncate_labels_suffix(labels: Mapping[str, str]) -> dict[str, str]:
    """Return the labels with the shared key suffix removed from every key."""
    suffix = find_label_suffix(labels)
    trimmed = {_trim_end(key, suffix): labels[key] for key in sorted(labels)}
    return dict(sorted(trimmed.items()))


def clean_alert_name(name: str) -> str:
    """Strip a trailing ``Trap`` (and any repetitions of it) from a trap name."""
    return _trim_end(name, _TRAP_SUFFIX)