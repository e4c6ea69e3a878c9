"""Algorithm preferences and callback hooks applied when a session connects."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

# Keys of the ``client_to_server``/``server_to_client`` blocks of a methods mapping.
_DIRECTION_KEYS = {
    "crypt": "ciphers",
    "mac": "digests",
    "comp": "compression",
}


def _split_names(value: Union[str, Sequence[str], None]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [name.strip() for name in value if name and name.strip()]


def _merge(*groups: Sequence[str]) -> Optional[tuple]:
    merged: List[str] = []
    for group in groups:
        for name in group:
            if name not in merged:
                merged.append(name)
    return tuple(merged) or None


@dataclass
class AlgorithmOptions:
    """Preferred algorithms, most preferred first.

    ``None`` keeps the transport library's default list for that category.
    Names the library does not know are rejected when the options are applied.
    """

    kex: Optional[Sequence[str]] = None
    key_types: Optional[Sequence[str]] = None
    ciphers: Optional[Sequence[str]] = None
    digests: Optional[Sequence[str]] = None
    compression: Optional[Sequence[str]] = None

    @classmethod
    def from_methods(cls, methods: Mapping[str, Any]) -> "AlgorithmOptions":
        """Build options from a nested ``methods`` mapping.

        Accepted keys are ``kex`` and ``hostkey`` plus ``client_to_server`` and
        ``server_to_client`` blocks holding ``crypt``, ``mac`` and ``comp``.
        Values are comma separated strings or lists. Both directions share one
        preference list, client-to-server names first.
        """
        per_direction: Dict[str, List[List[str]]] = {name: [] for name in _DIRECTION_KEYS.values()}
        for direction in ("client_to_server", "server_to_client"):
            block = methods.get(direction) or {}
            for key, attribute in _DIRECTION_KEYS.items():
                per_direction[attribute].append(_split_names(block.get(key)))

        return cls(
            kex=_merge(_split_names(methods.get("kex"))),
            key_types=_merge(_split_names(methods.get("hostkey"))),
            ciphers=_merge(*per_direction["ciphers"]),
            digests=_merge(*per_direction["digests"]),
            compression=_merge(*per_direction["compression"]),
        )

    @classmethod
    def coerce(cls, value: Union["AlgorithmOptions", Mapping[str, Any], None]) -> Optional["AlgorithmOptions"]:
        if value is None or isinstance(value, AlgorithmOptions):
            return value
        return cls.from_methods(value)

    def apply(self, security_options: Any) -> None:
        """Write the configured preferences onto ``transport.get_security_options()``.

        Raises ``ValueError`` for algorithm names the transport does not support.
        """
        for item in fields(self):
            value = getattr(self, item.name)
            if value:
                setattr(security_options, item.name, tuple(value))


@dataclass
class SessionCallbacks:
    """Optional hooks invoked during the life of a session.

    ``host_key(host, key)`` runs after key exchange; returning ``False``
    aborts the connection. ``disconnect(host, port)`` runs once the transport
    is closed. ``debug(message)`` receives lifecycle notes.
    """

    host_key: Optional[Callable[[str, Any], bool]] = None
    disconnect: Optional[Callable[[str, int], None]] = None
    debug: Optional[Callable[[str], None]] = None

    @classmethod
    def coerce(cls, value: Union["SessionCallbacks", Mapping[str, Callable], None]) -> "SessionCallbacks":
        if value is None:
            return cls()
        if isinstance(value, SessionCallbacks):
            return value
        known = {item.name for item in fields(cls)}
        unknown = set(value) - known
        if unknown:
            raise ValueError(f"Unsupported session callbacks: {', '.join(sorted(unknown))}")
        return cls(**dict(value))

    def notify_debug(self, message: str) -> None:
        if self.debug is not None:
            self.debug(message)
