"""Secure path resolution — sanitization, allowed roots, and pattern matching."""

from core.security.globs import GlobValidator, Matcher, Pattern, PatternSet
from core.security.paths import PathOptions, ResolvedPath, SecurePathValidator
from core.security.sanitizer import PathKind, PathSanitizer
from core.security.validator import SecurityValidator

__all__ = [
    "GlobValidator",
    "Matcher",
    "PathKind",
    "PathOptions",
    "PathSanitizer",
    "Pattern",
    "PatternSet",
    "ResolvedPath",
    "SecurePathValidator",
    "SecurityValidator",
]
