import asyncio
import stat
import sys
from pathlib import Path

import pytest

from app.crawler.progress import ProgressSnapshot
from app.errors import ProcessFailedError
from app.storage.downloads import DownloadStore

SITE_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Acme Widgets</title>
  <meta name="description" content="Widgets for everyone">
  <meta name="keywords" content="widgets, tools">
  <meta name="theme-color" content="#0070f3">
  <link rel="icon" href="favicon.ico">
  <link rel="stylesheet" href="css/site.css">
  <link rel="stylesheet" href="https://fonts.googleapis.com/css?family=Open+Sans:400,700">
  <style>body { color: #333333; } .btn { background: #28a745; }</style>
</head>
<body style="font-family: 'Helvetica Neue', Arial, sans-serif">
  <header class="site-header" id="top">
    <img src="images/logo.png" alt="Acme logo" width="120" height="40">
  </header>
  <nav class="main-nav"><a href="about.html">About</a></nav>
  <main id="content"><p>Hello</p></main>
  <footer><img src="/images/logo-footer.png" alt="Acme Logo"></footer>
</body>
</html>
"""

SITE_CSS = """body { background: #ffffff; }
a { color: #0070f3; }
.muted { color: rgb(10, 20, 30); }
@font-face {
  font-family: "Brand Sans";
  src: url("../fonts/brand.woff2") format("woff2");
  font-weight: 700;
}
"""

# Stand-in for the httrack binary. Behaviour is keyed off the target URL:
# "slow" blocks, "broken" exits 2, "empty" writes no HTML.
FAKE_HTTRACK = """#!{python}
import os
import sys
import time

args = sys.argv[1:]
if args and args[0] == "--version":
    print("HTTrack version 3.49-2")
    sys.exit(0)

url = args[0]
out = [a for a in args if a.startswith("--path=")][0][len("--path="):]
sys.stdout.write("Downloading: " + url + "\\n")
sys.stdout.write("1/2 files\\r")
sys.stdout.flush()
if "slow" in url:
    time.sleep(30)
if "broken" in url:
    sys.stderr.write("Unable to connect to host\\n")
    sys.exit(2)
if "empty" not in url:
    with open(os.path.join(out, "index.html"), "w") as fh:
        fh.write({html!r})
sys.stdout.write("2/2 files\\n")
"""


def write_site(directory: Path) -> Path:
    """Lay out a small mirrored site (HTML, stylesheet, logos) in directory."""
    (directory / "css").mkdir(parents=True, exist_ok=True)
    (directory / "images").mkdir(exist_ok=True)
    (directory / "index.html").write_text(SITE_HTML)
    (directory / "css" / "site.css").write_text(SITE_CSS)
    (directory / "favicon.ico").write_bytes(b"\x00\x00\x01\x00")
    (directory / "images" / "logo.png").write_bytes(b"\x89PNG")
    (directory / "images" / "logo-footer.png").write_bytes(b"\x89PNG")
    return directory


@pytest.fixture
def store(tmp_path):
    return DownloadStore(tmp_path / "downloads")


@pytest.fixture
def fake_httrack(tmp_path):
    script = tmp_path / "httrack"
    script.write_text(FAKE_HTTRACK.format(python=sys.executable, html=SITE_HTML))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


class DummySupervisor:
    """In-process supervisor double.

    outcome is one of "succeed", "fail", "block" or "no-html".
    """

    def __init__(self, store: DownloadStore, outcome: str = "succeed"):
        self.store = store
        self.outcome = outcome
        self.started = []
        self.stopped = []
        self.installed = True
        self._progress = {}
        self._blocked = {}

    async def start_crawl(self, job_id, target_url, options=None):
        self.started.append(job_id)
        if self.outcome == "fail":
            raise ProcessFailedError(1, "Unable to connect to host")
        directory = self.store.ensure_job_dir(job_id)
        if self.outcome == "block":
            release = asyncio.Event()
            self._blocked[job_id] = release
            self._progress[job_id] = ProgressSnapshot(
                files_downloaded=3, total_files=10, current_url=target_url
            )
            await release.wait()
            raise ProcessFailedError(-15)
        if self.outcome == "succeed":
            write_site(directory)

    def stop_crawl(self, job_id):
        self.stopped.append(job_id)
        self._progress.pop(job_id, None)
        release = self._blocked.pop(job_id, None)
        if release is not None:
            release.set()

    async def stop_all(self):
        for job_id in list(self._blocked):
            self.stop_crawl(job_id)

    def get_progress(self, job_id):
        return self._progress.get(job_id)

    async def check_installation(self):
        return self.installed


async def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01):
    """Poll predicate until it is truthy; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        result = predicate()
        if result:
            return result
        if loop.time() > deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(interval)
