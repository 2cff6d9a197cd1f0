"""
License code and claim token generation.

Codes use an unambiguous alphabet (no 0/O, 1/I) in XXXX-XXXX-XXXX-XXXX form.
"""
import secrets

LICENSE_CODE_CHARS = "ABCDEFGH" + "JKLMNPQR" + "STUVWXYZ" + "23456789"
LICENSE_CODE_SEGMENTS = 4
LICENSE_CODE_SEGMENT_LENGTH = 4


def generate_license_code() -> str:
    segments = [
        "".join(secrets.choice(LICENSE_CODE_CHARS) for _ in range(LICENSE_CODE_SEGMENT_LENGTH))
        for _ in range(LICENSE_CODE_SEGMENTS)
    ]
    return "-".join(segments)


def generate_claim_token() -> str:
    """64-character hex secret the customer uses to claim a pending license."""
    return secrets.token_hex(32)

