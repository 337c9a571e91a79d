"""Shared type definitions for canvasflow."""

from collections.abc import Mapping
from typing import Any, Literal

# Raw canvas record as decoded from JSON
type Record = Mapping[str, Any]

# Node id -> ordered, duplicate-free dependency ids
type DependencyState = dict[str, tuple[str, ...]]

# Endpoint role of an edge record
type Terminal = Literal["start", "end"]
