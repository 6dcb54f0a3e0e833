from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

TRUTHY = {"1", "true", "yes", "on"}


def _flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "").strip().lower() in TRUTHY


@dataclass
class ParserOptions:
    """
    Knobs for one parse. ``skip_labels`` jumps over the labels section via
    resynchronization instead of decoding each label image; ``strict`` turns
    every recovery heuristic off so the first bad field ends the parse.
    """

    skip_labels: bool = False
    strict: bool = False
    verbose: bool = False

    @property
    def resync(self) -> bool:
        return not self.strict

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ParserOptions":
        env = os.environ if environ is None else environ
        return cls(
            skip_labels=_flag(env, "MUDMAP_SKIP_LABELS"),
            strict=_flag(env, "MUDMAP_STRICT"),
            verbose=_flag(env, "MUDMAP_VERBOSE"),
        )
