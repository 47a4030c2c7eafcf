"""
Event indexer for red packets.

Consumes ``CreationSuccess``, ``ClaimSuccess`` and ``RefundSuccess`` events and
maintains ``Redpacket``, ``Claim`` and ``Refund`` records with a running
``remain_to_claim`` counter. The index remembers the last log position it
scanned and can be cached to disk so later runs only process new events.
"""
import json
import logging
import os
from typing import Any, Dict, Optional

from eth_utils import encode_hex

from config import Config
from redpacket.events import ClaimSuccess, CreationSuccess, EventLog, RefundSuccess

logger = logging.getLogger(__name__)

CACHE_VERSION = "1.0"


class RedPacketIndex:
    def __init__(self, cache_file: Optional[str] = None):
        self.cache_file = cache_file or Config.INDEX_CACHE_FILE
        self.last_scanned = 0
        self.redpackets: Dict[str, Dict[str, Any]] = {}
        self.claims: list = []
        self.refunds: list = []

    def handle_creation_success(self, event: CreationSuccess) -> None:
        packet_id = encode_hex(event.id)
        self.redpackets[packet_id] = {
            "id": packet_id,
            "total": str(event.total),
            "name": event.name,
            "message": event.message,
            "creator": event.creator,
            "creation_time": event.creation_time,
            "token_address": event.token_address,
            "number": event.number,
            "remain_to_claim": event.number,
            "ifrandom": event.ifrandom,
            "duration": event.duration,
            "expire_timestamp": event.creation_time + event.duration,
            "refunded": False,
            "all_claimed": False,
        }

    def handle_claim_success(self, event: ClaimSuccess) -> None:
        packet_id = encode_hex(event.id)
        self.claims.append({
            "redpacket": packet_id,
            "claimer": event.claimer,
            "claimed_value": str(event.claimed_value),
            "token_address": event.token_address,
        })

        redpacket = self.redpackets.get(packet_id)
        if redpacket is None:
            return
        redpacket["remain_to_claim"] -= 1
        if redpacket["remain_to_claim"] == 0:
            redpacket["all_claimed"] = True

    def handle_refund_success(self, event: RefundSuccess) -> None:
        packet_id = encode_hex(event.id)
        self.refunds.append({
            "redpacket": packet_id,
            "token_address": event.token_address,
            "remaining_balance": str(event.remaining_balance),
        })

        redpacket = self.redpackets.get(packet_id)
        if redpacket is None:
            return
        redpacket["refunded"] = True

    def scan(self, event_log: EventLog) -> int:
        """
        Process every event appended since the last scan.

        Returns:
            Number of red packet events handled
        """
        handlers = {
            CreationSuccess.event_name: self.handle_creation_success,
            ClaimSuccess.event_name: self.handle_claim_success,
            RefundSuccess.event_name: self.handle_refund_success,
        }
        logs = event_log.get_logs(from_index=self.last_scanned)
        handled = 0
        for event in logs:
            handler = handlers.get(event.event_name)
            if handler is not None:
                handler(event)
                handled += 1
        self.last_scanned += len(logs)
        logger.debug('indexed %d events (%d scanned, cursor at %d)', handled, len(logs), self.last_scanned)
        return handled

    def claims_for(self, packet_id) -> list:
        packet_id = encode_hex(packet_id) if isinstance(packet_id, bytes) else packet_id
        return [claim for claim in self.claims if claim["redpacket"] == packet_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": CACHE_VERSION,
            "last_scanned": self.last_scanned,
            "redpackets": self.redpackets,
            "claims": self.claims,
            "refunds": self.refunds,
        }

    def save_cache(self) -> None:
        """Save the index to ``cache_file``."""
        directory = os.path.dirname(self.cache_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.cache_file, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_cache(cls, cache_file: Optional[str] = None) -> "RedPacketIndex":
        """
        Load an index from disk.

        Returns:
            The cached index, or an empty one if the file doesn't exist
        """
        index = cls(cache_file)
        if not os.path.exists(index.cache_file):
            return index

        with open(index.cache_file, 'r') as f:
            data = json.load(f)
        if data.get("version") != CACHE_VERSION:
            raise ValueError(f'Unsupported index cache version {data.get("version")!r} in {index.cache_file}')
        index.last_scanned = data["last_scanned"]
        index.redpackets = data["redpackets"]
        index.claims = data["claims"]
        index.refunds = data["refunds"]
        return index

    def get_cache_stats(self) -> Dict[str, Any]:
        return {
            "cache_file": self.cache_file,
            "cache_exists": os.path.exists(self.cache_file),
            "last_scanned": self.last_scanned,
            "num_redpackets": len(self.redpackets),
            "num_claims": len(self.claims),
            "num_refunds": len(self.refunds),
            "open_redpackets": sum(
                1 for rp in self.redpackets.values() if not rp["all_claimed"] and not rp["refunded"]
            ),
        }
