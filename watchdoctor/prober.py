"""TCP connect liveness probe."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class ProbeResult:
    target: str
    ok: bool
    error: str | None
    elapsed_ms: float


def split_host_port(address: str) -> tuple[str, int]:
    s = (address or "").strip()
    if s.startswith("["):
        end = s.find("]")
        if end < 0 or s[end + 1 : end + 2] != ":":
            raise ValueError(f"missing port in address {address!r}")
        host, port_s = s[1:end], s[end + 2 :]
    else:
        host, sep, port_s = s.rpartition(":")
        if not sep:
            raise ValueError(f"missing port in address {address!r}")
        if ":" in host:
            raise ValueError(f"too many colons in address {address!r}")
    if not port_s.isdigit() or not 0 < int(port_s) < 65536:
        raise ValueError(f"invalid port in address {address!r}")
    return host, int(port_s)


async def probe(target: str, timeout: float) -> ProbeResult:
    """
    Check that ``target`` accepts a TCP connection within ``timeout`` seconds.

    Every failure (refused, timed out, unresolvable, malformed address) is
    reported the same way: ``ok=False`` with the error text for logging.
    """
    started = time.perf_counter()
    writer = None
    try:
        host, port = split_host_port(target)
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host=host, port=port),
            timeout=timeout,
        )
    except (OSError, ValueError, asyncio.TimeoutError) as e:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        return ProbeResult(
            target=target,
            ok=False,
            error=f"{type(e).__name__}: {e}",
            elapsed_ms=round(elapsed_ms, 3),
        )
    finally:
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    return ProbeResult(target=target, ok=True, error=None, elapsed_ms=round(elapsed_ms, 3))
