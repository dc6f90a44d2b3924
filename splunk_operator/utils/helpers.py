import base64
import hashlib
import jsonpickle
import mmh3
from datetime import datetime, timezone
from typing import Any, Dict, List


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sort_dict_keys(d):
    """Recursively sort dictionary keys and handle nested structures.

    Args:
        d: Data structure (dict, list, or primitive type)

    Returns:
        Sorted version of the data structure
    """
    if isinstance(d, dict):
        return {key: sort_dict_keys(value) for key, value in sorted(d.items())}
    elif isinstance(d, list):
        return [sort_dict_keys(item) for item in d]
    else:
        return d


def canonicalize_dict(data) -> str:
    """
    Returns a canonical JSON representation of a dictionary.

    Keys are sorted recursively so the representation stays stable even when
    key order varies between the observed and the desired object.
    """
    return jsonpickle.dumps(sort_dict_keys(data), unpicklable=False)


def compute_hash(data: Any) -> str:
    """Compute a murmur3 based hash, truncated for use in annotations."""
    if isinstance(data, dict):
        _data = canonicalize_dict(data)
    elif isinstance(data, str):
        _data = data.encode()
    else:
        raise ValueError(f"Hash of {type(data)} is not supported.")
    mumur_str = str(mmh3.hash128(_data))
    full_hash = hashlib.sha256(mumur_str.encode("utf-8")).hexdigest()
    return full_hash[:16]


def upsert_condition(conds: List[Dict], newc: Dict) -> List[Dict]:
    """In-memory merge by .type. Only bump lastTransitionTime when status flips."""
    conds = list(conds or [])
    for i, c in enumerate(conds):
        if c.get("type") == newc["type"]:
            ltt = c.get("lastTransitionTime") or now()
            if c.get("status") != newc["status"]:
                ltt = now()
            conds[i] = {**c, **newc, "lastTransitionTime": ltt}
            break
    else:
        conds.append({**newc, "lastTransitionTime": now()})
    return conds


def decode_secret_value(value: Any) -> str:
    """Decode a base64 value from `V1Secret.data`."""
    if not value:
        return ""
    if isinstance(value, str):
        value = value.encode()
    return base64.b64decode(value, validate=True).decode()


def encode_secret_value(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


def encode_secret_data(data: Dict[str, str]) -> Dict[str, str]:
    return {k: encode_secret_value(v) for k, v in data.items()}
