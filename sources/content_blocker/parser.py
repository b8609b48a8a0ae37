"""
Feed decoders.

Responsibilities:
    - Decode the HTTPS-upgrade bloom filter specification and whitelist
    - Decode the entity list, disconnect list and surrogates bodies for stores
    - No network I/O and no persistence; every failure raises DecodeError
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, List

from sources.content_blocker.models import BloomFilterSpecification


class DecodeError(ValueError):
    """Feed body does not have the expected shape."""


def _load_json(data: bytes, what: str) -> Any:
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"{what}: invalid JSON ({e})") from e


@dataclass(frozen=True)
class DisconnectTracker:
    domain: str
    category: str
    network: str


class HTTPSUpgradeParser:
    """Stateless decoders for the HTTPS-upgrade feeds."""

    @staticmethod
    def convert_bloom_filter_specification(data: bytes) -> BloomFilterSpecification:
        """Decode ``{"totalEntries": int, "errorRate": float, "sha256": str}``."""
        raw = _load_json(data, "bloom filter specification")
        if not isinstance(raw, dict):
            raise DecodeError("bloom filter specification: expected an object")

        total_entries = raw.get("totalEntries")
        error_rate = raw.get("errorRate")
        sha256 = raw.get("sha256")
        # bool is an int subclass; a flag is never a valid count
        if not isinstance(total_entries, int) or isinstance(total_entries, bool):
            raise DecodeError("bloom filter specification: totalEntries missing")
        if not isinstance(error_rate, (int, float)) or isinstance(error_rate, bool):
            raise DecodeError("bloom filter specification: errorRate missing")
        if not isinstance(sha256, str) or not sha256:
            raise DecodeError("bloom filter specification: sha256 missing")

        return BloomFilterSpecification(
            total_entries=total_entries,
            error_rate=float(error_rate),
            sha256=sha256.lower(),
        )

    @staticmethod
    def convert_whitelist(data: bytes) -> List[str]:
        """Decode ``{"data": ["host", ...]}`` into a list of host names."""
        raw = _load_json(data, "https whitelist")
        if not isinstance(raw, dict) or not isinstance(raw.get("data"), list):
            raise DecodeError("https whitelist: expected {\"data\": [...]}")

        domains = raw["data"]
        if not all(isinstance(domain, str) for domain in domains):
            raise DecodeError("https whitelist: entries must be strings")
        return [domain.strip().lower() for domain in domains if domain.strip()]


class BlockerListParser:
    """Stateless decoders for the tracker block list feeds."""

    @staticmethod
    def parse_entity_list(data: bytes) -> Dict[str, str]:
        """Map every property/resource domain to the entity that owns it."""
        raw = _load_json(data, "entity list")
        if not isinstance(raw, dict):
            raise DecodeError("entity list: expected an object")

        mapping: Dict[str, str] = {}
        for entity, info in raw.items():
            if not isinstance(info, dict):
                raise DecodeError(f"entity list: bad entry for {entity!r}")
            for key in ("properties", "resources"):
                for domain in info.get(key, []):
                    if isinstance(domain, str) and domain:
                        mapping[domain.lower()] = entity
        return mapping

    @staticmethod
    def parse_disconnect_list(data: bytes) -> Dict[str, DisconnectTracker]:
        """Flatten ``{"categories": {cat: [{network: {url: [domains]}}]}}``."""
        raw = _load_json(data, "disconnect list")
        categories = raw.get("categories") if isinstance(raw, dict) else None
        if not isinstance(categories, dict):
            raise DecodeError("disconnect list: categories missing")

        trackers: Dict[str, DisconnectTracker] = {}
        for category, networks in categories.items():
            if not isinstance(networks, list):
                raise DecodeError(f"disconnect list: bad category {category!r}")
            for network_entry in networks:
                if not isinstance(network_entry, dict):
                    continue
                for network, urls in network_entry.items():
                    if not isinstance(urls, dict):
                        continue
                    for domains in urls.values():
                        if not isinstance(domains, list):
                            continue
                        for domain in domains:
                            if isinstance(domain, str) and domain:
                                trackers[domain.lower()] = DisconnectTracker(
                                    domain=domain.lower(),
                                    category=category,
                                    network=network,
                                )
        if not trackers:
            raise DecodeError("disconnect list: no trackers")
        return trackers

    @staticmethod
    def parse_surrogates(data: bytes) -> Dict[str, str]:
        """Parse blank-line separated ``rule content-type`` + script blocks."""
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"surrogates: not UTF-8 ({e})") from e

        surrogates: Dict[str, str] = {}
        block: List[str] = []
        for line in text.splitlines() + [""]:
            if line.startswith("#"):
                continue
            if line.strip():
                block.append(line)
                continue
            if block:
                header = block[0].split()
                if len(header) != 2 or len(block) < 2:
                    raise DecodeError(f"surrogates: malformed block {block[0]!r}")
                surrogates[header[0]] = "\n".join(block[1:])
                block = []

        if not surrogates:
            raise DecodeError("surrogates: no entries")
        return surrogates
