"""Write-path and command policy evaluation."""

from webspec.policy.effects import EffectPolicy, PolicyViolation, command_prefix
from webspec.policy.globs import glob_matches, matches_any, normalize_relative_path

__all__ = [
    "EffectPolicy",
    "PolicyViolation",
    "command_prefix",
    "glob_matches",
    "matches_any",
    "normalize_relative_path",
]
