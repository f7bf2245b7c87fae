# packwarden/catalog/side.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from packwarden.pack.record import SIDE_BOTH, SIDE_CLIENT, SIDE_SERVER

logger = logging.getLogger(__name__)

__all__ = ["Support", "Side", "SideResolution", "classifySupport", "resolveSide", "resolveProjectSide"]



class Support(str, Enum):
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"



class Side(str, Enum):
    SKIP = "skip"
    UNIVERSAL = "universal"
    CLIENT = "client"
    SERVER = "server"

    def recordSide(self) -> str:
        """Value stored in a metadata record. SKIP has none."""
        if self is Side.CLIENT:
            return SIDE_CLIENT
        if self is Side.SERVER:
            return SIDE_SERVER
        if self is Side.UNIVERSAL:
            return SIDE_BOTH
        raise ValueError("SKIP has no record side")



@dataclass(frozen=True)
class SideResolution:
    side: Side
    warnings: tuple[str, ...] = field(default_factory=tuple)



def classifySupport(raw: str | None) -> Support:
    """required/optional -> SUPPORTED, unsupported -> UNSUPPORTED, anything else -> UNKNOWN."""
    value = str(raw or "").strip().lower()
    if value in ("required", "optional"):
        return Support.SUPPORTED
    if value == "unsupported":
        return Support.UNSUPPORTED
    return Support.UNKNOWN



S, U, K = Support.SUPPORTED, Support.UNSUPPORTED, Support.UNKNOWN

# (client, server) -> side. Client is checked before server where both rules could apply.
_TABLE: dict[tuple[Support, Support], Side] = {
    (U, U): Side.SKIP,
    (U, K): Side.SKIP,
    (K, U): Side.SKIP,
    (S, S): Side.UNIVERSAL,
    (K, K): Side.UNIVERSAL,
    (S, K): Side.CLIENT,
    (S, U): Side.CLIENT,
    (K, S): Side.SERVER,
    (U, S): Side.SERVER,
}



def resolveSide(client: str | None, server: str | None) -> SideResolution:
    """Total over every pair of raw signals; unknown signals add warnings unless the result is SKIP."""
    clientSupport, serverSupport = classifySupport(client), classifySupport(server)
    side = _TABLE[(clientSupport, serverSupport)]
    if side is Side.SKIP:
        return SideResolution(side)

    warnings: list[str] = []
    if clientSupport is Support.UNKNOWN:
        warnings.append(f"client support is unknown ({client!r})")
    if serverSupport is Support.UNKNOWN:
        warnings.append(f"server support is unknown ({server!r})")
    return SideResolution(side, tuple(warnings))



def resolveProjectSide(clientSupport: str | None, serverSupport: str | None) -> SideResolution:
    """Project-level variant: never SKIP, falls back to UNIVERSAL with a warning."""
    resolution = resolveSide(clientSupport, serverSupport)
    if resolution.side is not Side.SKIP:
        return resolution
    return SideResolution(
        Side.UNIVERSAL,
        (f"no supported side (client: {clientSupport!r}, server: {serverSupport!r}); assuming universal",),
    )
