"""
Reliable message bus (RMB) client used to query nodes by twin id.

Messages are pushed onto the local message bus queue in Redis; the bus relays
them to the destination twin and pushes the reply onto a per-message return
queue, which is popped here.
"""

import base64
import json
import time
import uuid
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import RmbError


SYSTEM_LOCAL_QUEUE = "msgbus.system.local"

CMD_STATISTICS = "zos.statistics.get"
CMD_SYSTEM_DMI = "zos.system.dmi"
CMD_SYSTEM_HYPERVISOR = "zos.system.hypervisor"


class RmbClient:
    """Request/reply client over the local message bus."""

    def __init__(self, redis_url: str, default_timeout: int = 30):
        self.redis_url = redis_url
        self.default_timeout = default_timeout
        self.logger = get_logger("gridproxy.rmb")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    async def close(self) -> None:
        """Close Redis connections."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _build_message(self, twin_id: int, command: str, data: Any, timeout: int) -> Dict[str, Any]:
        message_id = str(uuid.uuid4())
        return {
            "ver": 1,
            "uid": message_id,
            "cmd": command,
            "exp": timeout,
            "try": 1,
            "dat": base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii"),
            "src": 0,
            "dst": [twin_id],
            "ret": message_id,
            "shm": "",
            "now": int(time.time()),
            "err": "",
        }

    async def call(self, twin_id: int, command: str, data: Any = None, timeout: Optional[int] = None) -> Any:
        """Send ``command`` to ``twin_id`` and return the decoded reply payload."""
        timeout = timeout or self.default_timeout
        message = self._build_message(twin_id, command, data, timeout)
        client = await self._get_redis()

        try:
            await client.rpush(SYSTEM_LOCAL_QUEUE, json.dumps(message))
            reply: Optional[Tuple[str, str]] = await client.blpop([message["ret"]], timeout=timeout)
        except RedisError as exc:
            raise RmbError(command, "message bus unavailable", details={"error": str(exc)}) from exc

        if reply is None:
            raise RmbError(command, f"no reply from twin {twin_id} within {timeout}s")

        return self._decode_reply(command, reply[1])

    def _decode_reply(self, command: str, raw: str) -> Any:
        try:
            response = json.loads(raw)
        except ValueError as exc:
            raise RmbError(command, "invalid reply", details={"error": str(exc)}) from exc

        if not isinstance(response, dict):
            raise RmbError(command, "invalid reply", details={"reply": raw})

        if response.get("err"):
            raise RmbError(command, response["err"])

        encoded = response.get("dat") or ""
        if not encoded:
            return None
        try:
            return json.loads(base64.b64decode(encoded))
        except ValueError as exc:
            raise RmbError(command, "invalid reply payload", details={"error": str(exc)}) from exc


class NodeClient:
    """zos node API bound to a single twin."""

    def __init__(self, twin_id: int, rmb: RmbClient):
        self.twin_id = twin_id
        self.rmb = rmb

    async def counters(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Return the node's (total, used) capacity counters."""
        result = await self.rmb.call(self.twin_id, CMD_STATISTICS)
        if not isinstance(result, dict) or "total" not in result or "used" not in result:
            raise RmbError(CMD_STATISTICS, "malformed capacity counters")
        return result["total"], result["used"]

    async def system_dmi(self) -> Any:
        return await self.rmb.call(self.twin_id, CMD_SYSTEM_DMI)

    async def system_hypervisor(self) -> Any:
        return await self.rmb.call(self.twin_id, CMD_SYSTEM_HYPERVISOR)
