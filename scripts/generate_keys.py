"""
Development JWT tooling.

Access tokens are issued by the identity service in production. Locally,
this script creates the RSA keypair the API verifies with and can mint
tokens for a user or admin caller.

Usage:
    python scripts/generate_keys.py                 # write keys/private.pem, keys/public.pem
    python scripts/generate_keys.py --token admin   # also print an admin access token
"""

import argparse
import os
import uuid
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


def generate_keys(output_dir: Path, overwrite: bool = False) -> None:
    """Write an RSA-2048 keypair as PEM files unless one already exists."""
    private_path = output_dir / "private.pem"
    public_path = output_dir / "public.pem"
    if private_path.exists() and public_path.exists() and not overwrite:
        print(f"Keys already present in {output_dir.resolve()} (use --overwrite to replace)")
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_path.write_bytes(private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ))
    public_path.write_bytes(private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ))

    print("RSA keypair generated:")
    print(f"  Private key: {private_path.resolve()}")
    print(f"  Public key:  {public_path.resolve()}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--output-dir", default="keys")
    parser.add_argument("--overwrite", action="store_true")
    parser.add_argument("--token", choices=["user", "admin"], help="print an access token for this role")
    parser.add_argument("--user-id", default=None, help="token subject (default: random UUID)")
    args = parser.parse_args()

    generate_keys(Path(args.output_dir), overwrite=args.overwrite)

    if args.token:
        # Imported late: security loads the key files at import time.
        from app.core.security import create_access_token

        subject = args.user_id or str(uuid.uuid4())
        print(f"\n{args.token} token for {subject}:")
        print(create_access_token(subject, args.token))


if __name__ == "__main__":
    # Run from project root
    os.chdir(Path(__file__).resolve().parent.parent)
    main()
