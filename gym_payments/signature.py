import hashlib
import hmac


def parse_signature_header(header: str):
    """Return (ts, v1) from an ``x-signature`` value like ``ts=1704908010,v1=618c8534...``."""
    values = {}
    for part in (header or "").split(","):
        key, sep, value = part.partition("=")
        if sep:
            values[key.strip()] = value.strip()
    return values.get("ts", ""), values.get("v1", "")


def build_manifest(resource_id: str, request_id: str, ts: str) -> str:
    # Order is part of the signed format. Empty fields are left out entirely.
    manifest = ""
    if resource_id:
        manifest += f"id:{resource_id};"
    if request_id:
        manifest += f"request-id:{request_id};"
    if ts:
        manifest += f"ts:{ts};"
    return manifest


def sign(manifest: str, secret: str) -> str:
    return hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()


def verify_signature(signature_header: str, request_id: str, resource_id: str, secret: str) -> bool:
    if not signature_header or not secret:
        return False

    ts, received = parse_signature_header(signature_header)
    if not ts or not received:
        return False

    expected = sign(build_manifest(resource_id, request_id, ts), secret)
    return hmac.compare_digest(expected.encode(), received.encode())
