"""
Generate the RSA key pair used to sign access tokens.

Usage:
    python examples/generate_keys.py [directory]
"""

import sys

from authcore import KeyMaterial


def main():
    directory = sys.argv[1] if len(sys.argv) > 1 else "keys"
    keys = KeyMaterial.generate()
    keys.save(directory)

    print(f"Wrote {directory}/private.key and {directory}/public.key")
    print(f"Key ID: {keys.key_id}")
    print("\nFor container deployments set PRIVATE_KEY / PUBLIC_KEY to the PEM")
    print("contents with newlines escaped as \\n.")


if __name__ == "__main__":
    main()
