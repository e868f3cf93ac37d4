#!/usr/bin/env python3
"""
Generate a VAPID key pair for browser push tokens.

Import the pair into the Firebase console (Cloud Messaging > Web Push
certificates) and expose the public half to browsers via VAPID_PUBLIC_KEY.
"""

import argparse
import base64

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


def base64url_encode(data: bytes) -> str:
    """Encode bytes as base64url without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_vapid_keys() -> tuple[str, str]:
    """Return (public_key, private_key) as base64url strings."""
    private_key = ec.generate_private_key(ec.SECP256R1())

    # Raw 32-byte private scalar
    private_bytes = private_key.private_numbers().private_value.to_bytes(32, "big")

    # Uncompressed point: 0x04 + X + Y (65 bytes)
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )

    return base64url_encode(public_bytes), base64url_encode(private_bytes)


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a VAPID key pair.")
    parser.add_argument("--env", action="store_true", help="print only KEY=value lines")
    args = parser.parse_args()

    public_key, private_key = generate_vapid_keys()
    if not args.env:
        print("\n=== VAPID Keys Generated ===\n")
        print("Add these to your environment variables:\n")
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_PRIVATE_KEY={private_key}")


if __name__ == "__main__":
    main()
