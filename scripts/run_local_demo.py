"""이 파일은 .py 로컬 데모 실행 스크립트로 로컬 HTTP 사이트를 감사하고 수정 패킷을 만듭니다."""

from __future__ import annotations

import sys
import tempfile
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Tuple

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from app.adapters.http import RequestsPageFetcher
from app.core.logging import setup_logging
from app.core.plugin_loader import CheckRegistry, PluginLoader
from app.core.types import DomainConfig
from app.db.session import build_engine, build_session_factory, init_db
from app.services.fix_packet import save_fix_packet
from app.services.orchestrator import AuditRunner

PAGES = {
    "/": (
        "<html lang='ko'><head><title>Demo</title></head><body><h1>Home</h1>"
        "<a href='/about'>about</a> <a href='/missing'>missing</a>"
        "<a href='https://example.org/'>external</a> <a href='javascript:void(0)'>js</a></body></html>"
    ),
    "/about": (
        "<html><head><title>About the local demo site</title>"
        "<meta name='viewport' content='width=device-width, initial-scale=1'></head>"
        "<body><h1>About</h1><img src='/logo.png'></body></html>"
    ),
}


class DemoHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        body = PAGES.get(self.path)
        if body is None:
            self.send_response(404)
            self.end_headers()
            return
        encoded = body.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.send_header("X-Content-Type-Options", "nosniff")
        self.end_headers()
        self.wfile.write(encoded)

    def log_message(self, format: str, *args) -> None:
        return


def _start_server() -> Tuple[HTTPServer, int]:
    server = HTTPServer(("127.0.0.1", 0), DemoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, server.server_port


def main() -> None:
    setup_logging()
    engine = build_engine("sqlite://")
    init_db(engine)
    session = build_session_factory(engine)()
    registry = CheckRegistry.from_loader(PluginLoader(REPO_ROOT / "plugins"))

    server, port = _start_server()
    try:
        domain = DomainConfig(hostname="127.0.0.1", scheme="http", port=port, requests_per_second=20)
        runner = AuditRunner(session, registry, fetcher_factory=lambda _: RequestsPageFetcher(timeout=5))
        summary = runner.run([domain], max_runtime_minutes=1, triggered_by="demo")
    finally:
        server.shutdown()
        server.server_close()

    print(f"Run {summary.run_id}: {summary.go_no_go.value} {summary.counts}")
    for result in summary.domains:
        print(f"- {result.hostname}: {result.status} pages={result.pages_crawled} stop={result.stop_reason}")

    with tempfile.TemporaryDirectory() as tmp:
        record = save_fix_packet(session, summary.run_id, base_dir=Path(tmp))
        print(record.narrative)
    session.close()


if __name__ == "__main__":
    main()
