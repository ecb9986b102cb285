"""
Configuration Loader (``recovery_config.loader``).

Responsibility
--------------
Loads a YAML rule-set file and parses it into the frozen dataclasses of
``recovery_config.schema``.  Runtime callers go through
``recovery_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass.
* Rates are parsed as Decimal from their string form; floats never enter.
* Keyword tables are lower-cased tuples.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing keys or invalid values  -> ``ConfigValidationError`` listing
  every problem found.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from recovery_config.schema import IngestionSettings, RecoveryConfig, ReportingSettings
from recovery_engines.dimensions import ChannelRules
from recovery_engines.fees import EligibilityRules, FeeSchedule, MarketplaceRate
from recovery_kernel.exceptions import ConfigValidationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


class _Parser:
    """Collects every validation problem instead of stopping at the first."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def require(self, data: dict[str, Any], key: str, where: str) -> Any:
        if not isinstance(data, dict) or key not in data:
            self.errors.append(f"{where}.{key} is required")
            return None
        return data[key]

    def decimal(self, value: Any, where: str) -> Decimal:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            self.errors.append(f"{where} must be a decimal, got {value!r}")
            return Decimal("0")
        if result < 0:
            self.errors.append(f"{where} must not be negative")
        return result

    def keywords(self, value: Any, where: str) -> tuple[str, ...]:
        if value is None:
            return ()
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            self.errors.append(f"{where} must be a list of strings")
            return ()
        return tuple(v.lower() for v in value)


def parse_fee_schedule(data: dict[str, Any], p: _Parser) -> FeeSchedule:
    rates = []
    for i, entry in enumerate(p.require(data, "marketplace_rates", "fees") or []):
        where = f"fees.marketplace_rates[{i}]"
        electronics = entry.get("electronics_rate")
        rates.append(
            MarketplaceRate(
                keywords=p.keywords(p.require(entry, "keywords", where), f"{where}.keywords"),
                rate=p.decimal(p.require(entry, "rate", where), f"{where}.rate"),
                electronics_rate=(
                    p.decimal(electronics, f"{where}.electronics_rate")
                    if electronics is not None
                    else None
                ),
            )
        )

    elig = p.require(data, "b2c_eligibility", "fees") or {}
    where = "fees.b2c_eligibility"
    eligibility = EligibilityRules(
        always_eligible_auction_flags=p.keywords(
            elig.get("always_eligible_auction_flags"), f"{where}.always_eligible_auction_flags"
        ),
        excluded_keywords=p.keywords(elig.get("excluded_keywords"), f"{where}.excluded_keywords"),
        eligible_keywords=p.keywords(elig.get("eligible_keywords"), f"{where}.eligible_keywords"),
        eligible_keyword_pairs=tuple(
            p.keywords(pair, f"{where}.eligible_keyword_pairs")
            for pair in elig.get("eligible_keyword_pairs") or []
        ),
    )

    return FeeSchedule(
        gated_client_source=str(p.require(data, "gated_client_source", "fees") or "").strip(),
        formula_exempt_keywords=p.keywords(
            data.get("formula_exempt_keywords"), "fees.formula_exempt_keywords"
        ),
        marketplace_rates=tuple(rates),
        fallback_rate=p.decimal(p.require(data, "fallback_rate", "fees"), "fees.fallback_rate"),
        electronics_keywords=p.keywords(
            data.get("electronics_keywords"), "fees.electronics_keywords"
        ),
        eligibility=eligibility,
        rounding_quantum=p.decimal(data.get("rounding_quantum", "0.01"), "fees.rounding_quantum"),
    )


def parse_channel_rules(data: dict[str, Any], p: _Parser) -> ChannelRules:
    pairs = []
    for i, pair in enumerate(p.require(data, "sales_channel_keywords", "channels") or []):
        if not isinstance(pair, list) or len(pair) != 2:
            p.errors.append(f"channels.sales_channel_keywords[{i}] must be [keyword, channel]")
            continue
        pairs.append((str(pair[0]).lower(), str(pair[1])))

    return ChannelRules(
        blank_marketplace_channel=p.require(data, "blank_marketplace_channel", "channels"),
        sales_channel_keywords=tuple(pairs),
        auction_channel=p.require(data, "auction_channel", "channels"),
        auction_flag_value=str(p.require(data, "auction_flag_value", "channels")),
        auction_marketplace=p.require(data, "auction_marketplace", "channels"),
        walmart_restock_keywords=p.keywords(
            data.get("walmart_restock_keywords"), "channels.walmart_restock_keywords"
        ),
        b2c_resale_order_type=p.require(data, "b2c_resale_order_type", "channels"),
    )


def parse_ingestion(data: dict[str, Any], p: _Parser) -> IngestionSettings:
    batch_size = data.get("batch_size", 500)
    if not isinstance(batch_size, int) or batch_size < 1:
        p.errors.append(f"ingestion.batch_size must be a positive integer, got {batch_size!r}")
        batch_size = 500
    delimiter = str(data.get("delimiter", ","))
    if len(delimiter) != 1:
        p.errors.append(f"ingestion.delimiter must be one character, got {delimiter!r}")
    return IngestionSettings(
        batch_size=batch_size,
        delimiter=delimiter,
        encoding=str(data.get("encoding", "utf-8")),
        required_columns=p.keywords(
            data.get("required_columns", ["trgid"]), "ingestion.required_columns"
        ),
    )


def parse_reporting(data: dict[str, Any], p: _Parser) -> ReportingSettings:
    return ReportingSettings(
        excluded_marketplace=str(data.get("excluded_marketplace", "Transfer")),
        owned_program_keyword=str(data.get("owned_program_keyword", "owned")).lower(),
        trend_weeks=int(data.get("trend_weeks", 12)),
    )


def parse_config(data: dict[str, Any], source: str) -> RecoveryConfig:
    """
    Parse a raw rule-set document.

    Raises:
        ConfigValidationError: listing every problem found.
    """
    p = _Parser()
    config = RecoveryConfig(
        config_id=str(data.get("config_id", "unnamed")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        source=source,
        ingestion=parse_ingestion(data.get("ingestion") or {}, p),
        fee_schedule=parse_fee_schedule(p.require(data, "fees", "config") or {}, p),
        channel_rules=parse_channel_rules(p.require(data, "channels", "config") or {}, p),
        reporting=parse_reporting(data.get("reporting") or {}, p),
    )
    if p.errors:
        raise ConfigValidationError(source, p.errors)
    return config


def load_config(path: Path) -> RecoveryConfig:
    return parse_config(load_yaml_file(path), str(path))
