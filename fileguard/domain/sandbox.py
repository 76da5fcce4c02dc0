"""Filesystem sandbox resolution for untrusted, user-supplied paths.

Resolution is lexical by default: the raw value is percent-decoded once,
screened for NUL bytes, anchored under the root and normalized, then checked
against the root boundary. Strict mode additionally canonicalizes the approved
path through the filesystem so that symlinks cannot lead outside the root.
"""

import os
import re
import urllib.parse
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

RawInput = Union[str, bytes, None]

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_SEPARATORS = tuple(sep for sep in (os.sep, os.altsep) if sep)


class DecodePolicy(str, Enum):
    """What to do when percent-decoding the raw value fails."""

    FALLBACK = "fallback"
    REJECT = "reject"


class RejectReason(str, Enum):
    """Reason tag attached to every rejected decision."""

    NULL_BYTE = "null-byte-injection"
    PATH_TRAVERSAL = "path-traversal"
    SYMLINK_ESCAPE = "symlink-escape"
    DECODE_ERROR = "decode-error"
    NOT_FOUND = "not-found"


INPUT_ERRORS = frozenset({RejectReason.NULL_BYTE, RejectReason.DECODE_ERROR})
BOUNDARY_VIOLATIONS = frozenset(
    {RejectReason.PATH_TRAVERSAL, RejectReason.SYMLINK_ESCAPE}
)


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the configured sandbox."""

    def __init__(self, reason: RejectReason) -> None:
        super().__init__(reason.value)
        self.reason = reason


@dataclass(frozen=True)
class Decision:
    """Outcome of a sandbox resolution: an approved path or a rejection."""

    path: Optional[Path] = None
    reason: Optional[RejectReason] = None

    def __post_init__(self) -> None:
        if (self.path is None) == (self.reason is None):
            raise ValueError("A decision carries exactly one of path or reason")

    @classmethod
    def approve(cls, path: Path) -> "Decision":
        return cls(path=path)

    @classmethod
    def reject(cls, reason: RejectReason) -> "Decision":
        return cls(reason=reason)

    @property
    def approved(self) -> bool:
        return self.reason is None

    @property
    def rejected(self) -> bool:
        return self.reason is not None

    @property
    def category(self) -> str:
        """Classify the decision as approved, input error or boundary violation."""
        if self.reason is None:
            return "approved"
        if self.reason in INPUT_ERRORS:
            return "input_error"
        if self.reason in BOUNDARY_VIOLATIONS:
            return "boundary_violation"
        return "not_found"

    def require(self) -> Path:
        """Return the approved path or raise ForbiddenPath with the reason."""
        if self.path is None:
            raise ForbiddenPath(self.reason)
        return self.path


def normalize_root(root: Union[str, os.PathLike]) -> str:
    """Return the lexically normalized form of an absolute root directory."""
    text = os.fspath(root)
    if not os.path.isabs(text):
        raise ValueError(f"Sandbox root must be an absolute path: {text!r}")
    return os.path.normpath(text)


def percent_decode(value: str) -> str:
    """Decode one round of %XX escapes, raising ValueError when malformed."""
    if _MALFORMED_ESCAPE.search(value):
        raise ValueError("Malformed percent escape")
    try:
        return urllib.parse.unquote_to_bytes(value).decode("utf-8")
    except UnicodeError as exc:
        raise ValueError("Percent escapes do not decode to UTF-8") from exc


def _decode_raw(raw: RawInput, decode_policy: DecodePolicy) -> Optional[str]:
    """Turn the raw value into text, or None when the reject policy applies."""
    if raw is None:
        text = ""
    elif isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            if decode_policy is DecodePolicy.REJECT:
                return None
            text = raw.decode("utf-8", "surrogateescape")
    else:
        text = raw if isinstance(raw, str) else str(raw)

    try:
        return percent_decode(text)
    except ValueError:
        if decode_policy is DecodePolicy.REJECT:
            return None
        return text


def _anchor_relative(decoded: str) -> str:
    # Drive letters and leading separators must not override the root.
    _, tail = os.path.splitdrive(decoded)
    return tail.lstrip("".join(_SEPARATORS))


def is_within_root(root: str, candidate: str) -> bool:
    """Return True when candidate equals root or lies beneath root + separator."""
    root_key = os.path.normcase(root)
    candidate_key = os.path.normcase(candidate)
    if candidate_key == root_key:
        return True
    prefix = root_key if root_key.endswith(_SEPARATORS) else root_key + os.sep
    return candidate_key.startswith(prefix)


def resolve(
    root: Union[str, os.PathLike],
    raw: RawInput,
    decode_policy: Union[DecodePolicy, str] = DecodePolicy.FALLBACK,
) -> Decision:
    """Lexically resolve raw under root without touching the filesystem."""
    root_text = normalize_root(root)
    decoded = _decode_raw(raw, DecodePolicy(decode_policy))
    if decoded is None:
        return Decision.reject(RejectReason.DECODE_ERROR)
    if "\x00" in decoded:
        return Decision.reject(RejectReason.NULL_BYTE)

    candidate = os.path.normpath(os.path.join(root_text, _anchor_relative(decoded)))
    if not is_within_root(root_text, candidate):
        return Decision.reject(RejectReason.PATH_TRAVERSAL)
    return Decision.approve(Path(candidate))


def resolve_strict(
    root: Union[str, os.PathLike],
    raw: RawInput,
    decode_policy: Union[DecodePolicy, str] = DecodePolicy.FALLBACK,
    allow_missing: bool = False,
) -> Decision:
    """Resolve raw under root and re-check containment after following symlinks.

    With ``allow_missing`` the deepest existing ancestor is canonicalized and
    the remaining components are appended lexically, which suits paths that
    are about to be created. Without it a missing component is rejected with
    ``not-found``.
    """
    decision = resolve(root, raw, decode_policy)
    if decision.rejected:
        return decision
    candidate = decision.require()

    try:
        real_root = Path(normalize_root(root)).resolve()
        real_candidate = candidate.resolve(strict=not allow_missing)
    except (FileNotFoundError, NotADirectoryError):
        return Decision.reject(RejectReason.NOT_FOUND)
    except (OSError, RuntimeError):
        # Symlink loops and unreadable components: containment cannot be proven.
        return Decision.reject(RejectReason.SYMLINK_ESCAPE)

    if not is_within_root(str(real_root), str(real_candidate)):
        return Decision.reject(RejectReason.SYMLINK_ESCAPE)
    return Decision.approve(real_candidate)


class SandboxResolver:
    """Resolve untrusted paths against a root fixed at construction time."""

    def __init__(
        self,
        root: Union[str, os.PathLike],
        decode_policy: Union[DecodePolicy, str] = DecodePolicy.FALLBACK,
        strict: bool = False,
    ) -> None:
        self._root = normalize_root(root)
        self._decode_policy = DecodePolicy(decode_policy)
        self._strict = strict

    @property
    def root(self) -> str:
        return self._root

    @property
    def decode_policy(self) -> DecodePolicy:
        return self._decode_policy

    @property
    def strict(self) -> bool:
        return self._strict

    def resolve(self, raw: RawInput) -> Decision:
        """Resolve a path that is expected to exist already."""
        if self._strict:
            return resolve_strict(self._root, raw, self._decode_policy)
        return resolve(self._root, raw, self._decode_policy)

    def resolve_for_write(self, raw: RawInput) -> Decision:
        """Resolve a path that may not exist yet, such as an upload target."""
        if self._strict:
            return resolve_strict(
                self._root, raw, self._decode_policy, allow_missing=True
            )
        return resolve(self._root, raw, self._decode_policy)
