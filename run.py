"""이 파일은 .py 엔트리포인트로 설정된 도메인 전체에 대한 감사 실행을 제공합니다."""

from app.core.config import PLUGINS_DIR
from app.core.domains import load_domains, select_domains
from app.core.logging import setup_logging
from app.core.plugin_loader import CheckRegistry, PluginLoader
from app.db.session import SessionLocal, init_db
from app.services.orchestrator import AuditRunner


def main() -> None:
    setup_logging()
    init_db()
    domains = select_domains(load_domains())
    registry = CheckRegistry.from_loader(PluginLoader(PLUGINS_DIR))
    session = SessionLocal()
    try:
        summary = AuditRunner(session, registry).run(domains, triggered_by="cli")
    finally:
        session.close()
    print(f"{summary.run_id}: {summary.go_no_go.value} {summary.counts}")


if __name__ == "__main__":
    main()
