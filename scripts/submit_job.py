#!/usr/bin/env python3
"""
Smoke test script for the Highlight Clipper API.

Runs one job end to end against a live server: upload (file or URL),
start processing, poll until the job settles, then download every clip.

Usage:
    python scripts/submit_job.py --url https://www.youtube.com/watch?v=...
    python scripts/submit_job.py --file talk.mp4
    python scripts/submit_job.py --file talk.mp4 --output my_clips

Reads CLIPPER_BASE_URL and CLIPPER_TOKEN from the environment or a .env file.
"""

import argparse
import os
import time
from pathlib import Path

import requests
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Configuration
BASE_URL = os.getenv("CLIPPER_BASE_URL", "http://localhost:8000")
TOKEN = os.getenv("CLIPPER_TOKEN", "")

# Output directory
OUTPUT_DIR = Path("test_clips")


def _headers() -> dict:
    return {"Authorization": f"Bearer {TOKEN}"}


def upload(video_file: str = None, url: str = None):
    """Upload a local file or register a URL. Returns the upload id."""
    if video_file:
        print(f"\n>> Uploading file: {video_file}")
        with open(video_file, "rb") as f:
            response = requests.post(
                f"{BASE_URL}/api/upload",
                headers=_headers(),
                files={"video": (Path(video_file).name, f, "video/mp4")},
            )
    else:
        print(f"\n>> Submitting URL: {url}")
        response = requests.post(
            f"{BASE_URL}/api/upload",
            headers=_headers(),
            json={"url": url},
        )

    if response.status_code != 200:
        print(f"!! Upload failed: {response.status_code}")
        print(response.text)
        return None

    upload_id = response.json()["uploadId"]
    print(f"OK Uploaded: {upload_id}")
    return upload_id


def start_processing(upload_id: str) -> bool:
    response = requests.post(
        f"{BASE_URL}/api/process",
        headers=_headers(),
        json={"uploadId": upload_id},
    )
    if response.status_code != 200:
        print(f"!! Failed to start processing: {response.status_code}")
        print(response.text)
        return False
    print("OK Processing started")
    return True


def poll_job_status(upload_id: str, poll_interval: int = 3):
    """Poll job status until it completes or fails."""
    print(f"\n.. Waiting for job {upload_id}...")

    start_time = time.time()
    last_status = ""

    while True:
        response = requests.get(f"{BASE_URL}/api/status/{upload_id}", headers=_headers())

        if response.status_code != 200:
            print(f"!! Failed to get job status: {response.status_code}")
            return None

        job = response.json()
        job_status = job.get("status", "")

        if job_status != last_status:
            elapsed = time.time() - start_time
            print(f"   [{job.get('progress', 0):3d}%] [{elapsed:6.1f}s] {job_status}")
            last_status = job_status

        if job_status == "completed":
            print(f"\nOK Job completed in {time.time() - start_time:.1f}s")
            return job
        elif job_status == "failed":
            print(f"\n!! Job failed: {job.get('error')}")
            return None

        time.sleep(poll_interval)


def download_clips(job: dict, output_dir: Path):
    """Download every clip of a completed job."""
    clips = job.get("clips", [])
    if not clips:
        print("\n-- No clips were produced (transcript too short?)")
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    print(f"\n>> Downloading {len(clips)} clips...")

    for clip in clips:
        response = requests.get(f"{BASE_URL}{clip['download_url']}", headers=_headers())
        if response.status_code != 200:
            print(f"   !! {clip['id']}: {response.status_code}")
            continue

        target = output_dir / f"{clip['id']}.mp4"
        target.write_bytes(response.content)
        size_mb = len(response.content) / 1024 / 1024
        print(f"   OK {clip['title']} ({clip['duration']:.1f}s, {size_mb:.1f} MB) -> {target}")

    print(f"\nOK Clips saved to: {output_dir.absolute()}")


def main():
    parser = argparse.ArgumentParser(
        description="Run one clipping job against a live Highlight Clipper server",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", type=str, help="Local MP4/MOV file to upload")
    source.add_argument("--url", type=str, help="Remote video URL to download")
    parser.add_argument("--output", type=str, default=str(OUTPUT_DIR), help="Where to save clips")
    parser.add_argument("--poll-interval", type=int, default=3, help="Seconds between status polls")

    args = parser.parse_args()

    if not TOKEN:
        print("!! CLIPPER_TOKEN is not set")
        return

    upload_id = upload(video_file=args.file, url=args.url)
    if not upload_id:
        return

    if not start_processing(upload_id):
        return

    job = poll_job_status(upload_id, poll_interval=args.poll_interval)
    if not job:
        return

    download_clips(job, Path(args.output))


if __name__ == "__main__":
    main()
