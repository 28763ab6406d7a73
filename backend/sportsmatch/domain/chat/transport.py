"""Delivery of server events to individual live connections."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Protocol

logger = logging.getLogger(__name__)


class ConnectionTransport(Protocol):
	async def send(self, sid: str, event: str, payload: dict) -> None:
		...


async def fan_out(transport: ConnectionTransport, sids: Iterable[str], event: str, payload: dict) -> int:
	"""Send one event to a fixed set of connections; return how many sends succeeded.

	The target set is materialised before the first send, so connections that
	join mid-delivery are not included and none of the snapshot is skipped.
	"""
	targets = sorted(set(sids))
	if not targets:
		return 0
	results = await asyncio.gather(
		*(transport.send(sid, event, payload) for sid in targets),
		return_exceptions=True,
	)
	delivered = 0
	for sid, result in zip(targets, results):
		if isinstance(result, BaseException):
			logger.warning("socket_send_failed", extra={"sid": sid, "event": event}, exc_info=result)
			continue
		delivered += 1
	return delivered
