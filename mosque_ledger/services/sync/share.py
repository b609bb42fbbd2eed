"""
Share Links

Serverless ways to move data between admins:
- group link: {app_url}#g={group}, opens the app pre-set to a sync group
- magic link: {app_url}#data={base64 JSON}, carries the whole ledger
- WhatsApp: a wa.me URL with a greeting and one of the links above
- share file: the ledger as a dated JSON attachment
"""

import base64
import binascii
import json
from datetime import date
from typing import Optional, Union
from urllib.parse import quote, urlsplit

from pydantic import ValidationError

from mosque_ledger.models.transaction import (
    Transaction,
    parse_transactions,
    transactions_to_wire,
)
from mosque_ledger.services.sync.kv_store import SyncError, normalize_sync_id


WHATSAPP_URL = "https://wa.me/?text="
GROUP_GREETING = (
    "Assalamu'alaikum, klik link ini untuk masuk ke "
    "Grup Laporan Keuangan Masjid: "
)
SNAPSHOT_GREETING = (
    "Assalamu'alaikum, berikut link data keuangan masjid terbaru: "
)


class InvalidShareLinkError(SyncError):
    """The link does not carry a usable group or snapshot."""
    pass


def _base_url(app_url: str) -> str:
    return app_url.split("#", 1)[0]


def group_link(app_url: str, group: str) -> str:
    group = normalize_sync_id(group)
    if not group:
        raise InvalidShareLinkError("Beri nama grup dulu (misal: adz-dzurriyyah)")
    return f"{_base_url(app_url)}#g={group}"


def whatsapp_url(message: str, link: str) -> str:
    return WHATSAPP_URL + quote(message + link, safe="")


def encode_snapshot(transactions: list[Transaction]) -> str:
    raw = json.dumps(transactions_to_wire(transactions), separators=(",", ":"), ensure_ascii=False)
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def magic_link(app_url: str, transactions: list[Transaction]) -> str:
    return f"{_base_url(app_url)}#data={encode_snapshot(transactions)}"


def decode_snapshot(value: str) -> list[Transaction]:
    """
    Decode a magic link snapshot.

    Accepts a full URL, a bare "#data=..." fragment or the raw payload.
    Missing base64 padding is tolerated; both URL-safe and standard
    alphabets are accepted.
    """
    payload = value.strip()
    if "#" in payload:
        payload = payload.split("#", 1)[1]
    if payload.startswith("data="):
        payload = payload[len("data="):]
    if not payload:
        raise InvalidShareLinkError("Link tidak berisi data")

    payload = payload.replace("+", "-").replace("/", "_")
    payload += "=" * (-len(payload) % 4)
    try:
        decoded = json.loads(base64.urlsafe_b64decode(payload).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidShareLinkError(f"Link data rusak: {e}")

    if not isinstance(decoded, list):
        raise InvalidShareLinkError("Format data tidak valid (bukan array transaksi).")
    try:
        return parse_transactions(decoded)
    except ValidationError as e:
        raise InvalidShareLinkError(f"Transaksi di dalam link tidak valid: {e}")


def parse_fragment(url: str) -> Optional[Union[str, list[Transaction]]]:
    """
    Inspect the fragment of an incoming URL.

    Returns the group name for "#g=...", the decoded ledger for "#data=...",
    and None when the URL carries neither.
    """
    fragment = urlsplit(url).fragment if "://" in url else url.lstrip("#")
    if fragment.startswith("g="):
        group = normalize_sync_id(fragment[2:])
        return group or None
    if fragment.startswith("data="):
        return decode_snapshot(fragment)
    return None


def share_file_name(on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"Data_Masjid_{on.strftime('%d-%m-%Y')}.json"


def share_file_content(transactions: list[Transaction]) -> bytes:
    return json.dumps(transactions_to_wire(transactions), ensure_ascii=False).encode("utf-8")
