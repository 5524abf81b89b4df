#!/usr/bin/env python3
"""Push a local file to the volume file store API."""
from __future__ import annotations

import argparse
import json
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

import requests
import urllib3
from requests import exceptions as req_exc

API_URL = os.getenv("UPLOAD_API_URL", "http://localhost:8000/files")
UPLOAD_TIMEOUT = int(os.getenv("UPLOAD_TIMEOUT", "900"))


class UploadFailed(RuntimeError):
    pass


def upload_file(
    path: Path,
    *,
    api_url: str = API_URL,
    name: Optional[str] = None,
    timeout: int = UPLOAD_TIMEOUT,
    verify: bool = True,
) -> dict:
    params = {"filename": name} if name else None
    try:
        with path.open("rb") as handle:
            response = requests.post(
                api_url,
                files={"file": (name or path.name, handle)},
                params=params,
                timeout=timeout,
                verify=verify,
            )
        response.raise_for_status()
        return response.json()
    except req_exc.SSLError:
        if shutil.which("curl") is None:
            raise
        return _upload_with_curl(path, api_url=api_url, name=name, timeout=timeout, verify=verify)


def build_curl_command(path: Path, *, api_url: str, name: Optional[str], timeout: int, verify: bool) -> List[str]:
    """curl fallback; certificate checks stay on unless ``verify`` is false."""
    target = f"{api_url}?filename={quote(name)}" if name else api_url
    command = ["curl", "-sS", "--fail", "--max-time", str(timeout), "-F", f"file=@{path}"]
    if not verify:
        command.append("-k")
    return command + [target]


def _upload_with_curl(path: Path, *, api_url: str, name: Optional[str], timeout: int, verify: bool) -> dict:
    command = build_curl_command(path, api_url=api_url, name=name, timeout=timeout, verify=verify)
    try:
        completed = subprocess.run(command, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as exc:  # pragma: no cover - depends on CLI environment
        raise UploadFailed(exc.stderr or f"curl exited with status {exc.returncode}.") from exc
    try:
        return json.loads(completed.stdout)
    except json.JSONDecodeError as exc:
        raise UploadFailed(f"Unexpected response from {api_url}: {completed.stdout.strip() or 'empty body'}") from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upload a file to the volume file store.")
    parser.add_argument("file", type=Path, help="Local file to upload.")
    parser.add_argument("--url", default=API_URL, help=f"Upload endpoint (default {API_URL}).")
    parser.add_argument("--name", default=None, help="Store under this file name instead of the local one.")
    parser.add_argument("--timeout", type=int, default=UPLOAD_TIMEOUT, help="Request timeout in seconds.")
    parser.add_argument("--insecure", action="store_true", help="Skip TLS certificate verification.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    path: Path = args.file.expanduser()
    if not path.is_file():
        print(f"Not a file: {path}", file=sys.stderr)
        return 1
    if args.insecure:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    try:
        payload = upload_file(
            path,
            api_url=args.url,
            name=args.name,
            timeout=args.timeout,
            verify=not args.insecure,
        )
    except (requests.RequestException, UploadFailed) as exc:
        print(f"Upload failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
