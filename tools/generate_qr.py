"""QR code generator tool.

Generates a QR code image for a session's public question page or a poll's
public voting page.

Usage:
    python tools/generate_qr.py --session <session_id> --output qr/session.png
    python tools/generate_qr.py --poll <poll_id> --base-url https://onair.example.com
"""

import argparse
import os
from pathlib import Path

import qrcode
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")


def public_url(base_url: str, session_id: str = None, poll_id: str = None) -> str:
    """Public page URL for a session (``/qa/<id>``) or a poll (``/poll/<id>``)."""
    base = base_url.rstrip("/")
    if session_id:
        return f"{base}/qa/{session_id}"
    if poll_id:
        return f"{base}/poll/{poll_id}"
    raise ValueError("A session id or a poll id is required.")


def generate_qr(url: str, output_path: str, size: int = 10):
    """Generate a QR code image.

    Args:
        url: The URL to encode.
        output_path: Path to save the PNG image.
        size: Box size for the QR code (default 10).
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=size,
        border=2,
    )
    qr.add_data(url)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    img.save(output_path)
    print(f"QR code saved to: {output_path}")
    print(f"URL encoded: {url}")


def main():
    default_base = os.getenv("PUBLIC_BASE_URL", "http://localhost:5173")

    parser = argparse.ArgumentParser(description="Generate a QR code for a public Q&A session or poll")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--session", help="Session id (public question page)")
    target.add_argument("--poll", help="Poll id (public voting page)")
    parser.add_argument("--base-url", default=default_base, help=f"Public site URL (default: {default_base})")
    parser.add_argument("--output", default="qr/qr_code.png", help="Output PNG path")
    parser.add_argument("--size", type=int, default=10, help="QR box size")
    args = parser.parse_args()

    output_path = str(project_root / args.output)
    os.makedirs(os.path.dirname(output_path), exist_ok=True)

    generate_qr(public_url(args.base_url, args.session, args.poll), output_path, args.size)


if __name__ == "__main__":
    main()
