#!/usr/bin/env python3
"""
AgriTrace PQC Key Initialization Script
Loads existing key pairs or generates them on first run, then prints the
public key fingerprints for out-of-band comparison.

Usage:
    python scripts/init_pqc_keys.py
    python scripts/init_pqc_keys.py --key-dir /var/lib/agritrace/keys --show-public
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.pqc_settings import PQCSettings
from services.pqc.exceptions import KeyStoreError
from services.pqc.key_store import KeyStore
from services.pqc.models import KeyScheme


def main():
    settings = PQCSettings.from_env()

    parser = argparse.ArgumentParser(description="Initialize AgriTrace PQC key pairs")
    parser.add_argument("--key-dir", "-d", default=settings.key_storage_dir,
                        help=f"Key storage directory (default: {settings.key_storage_dir})")
    parser.add_argument("--show-public", action="store_true",
                        help="Also print the hex public keys")
    args = parser.parse_args()

    print("AgriTrace PQC Key Initialization")
    print("=" * 50)
    print(f"Key directory: {args.key_dir}")

    key_store = KeyStore(args.key_dir)
    existed = {scheme: key_store.has_keys(scheme) for scheme in KeyScheme}

    try:
        pairs = key_store.initialize()
    except KeyStoreError as e:
        print(f"\n❌ Key initialization failed: {e}")
        return 1

    for scheme, pair in pairs.items():
        status = "loaded" if existed[scheme] else "generated"
        print(f"\n[{scheme.value}] {status}")
        print(f"  Fingerprint: {key_store.fingerprint(scheme)}")
        if args.show_public:
            print(f"  Public key:  {pair.public_key_hex}")

    print("\n✅ Key store ready. Keep the private key files out of backups and version control.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
