from __future__ import annotations

from dataclasses import dataclass
from types import ModuleType
from typing import Optional

from .audit.mysql_audit_repository import MySQLAuditRepository
from .audit.service import AuditService
from .database.connection import DBConfig, DatabaseConnection
from .guardians.mysql_guardian_repository import MySQLGuardianRepository
from .guardians.service import GuardianService
from .importer.service import ImportService
from .messaging.mysql_message_repository import MySQLMessageRepository, MySQLTemplateRepository
from .messaging.notifier import Notifier
from .messaging.service import MessageService, TemplateService
from .messaging.sms_client import ClickSendClient
from .qr.mysql_qr_repository import MySQLQrCodeRepository
from .qr.service import QrService
from .qr.storage import GitHubContentsStore, LocalDirStore, QrImageStore
from .scans.mysql_scan_repository import MySQLScanRepository
from .scans.service import ScanService
from .settings.mysql_settings_repository import MySQLDataMaintenanceRepository, MySQLSettingsRepository
from .settings.service import SettingsService
from .students.mysql_student_repository import MySQLStudentRepository
from .students.service import StudentService
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import AuthService, UserService
from .users.tokens import TokenService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    token_service: TokenService
    sms_client: ClickSendClient

    auth_service: AuthService
    user_service: UserService
    student_service: StudentService
    guardian_service: GuardianService
    qr_service: QrService
    template_service: TemplateService
    message_service: MessageService
    settings_service: SettingsService
    scan_service: ScanService
    import_service: ImportService


def build_qr_store(settings: ModuleType) -> QrImageStore:
    """``QR_STORAGE=github`` pushes PNGs to a GitHub repo, anything else keeps them on disk."""
    if str(getattr(settings, "QR_STORAGE", "local")).lower() == "github":
        return GitHubContentsStore(
            token=getattr(settings, "GITHUB_TOKEN", ""),
            owner=getattr(settings, "GITHUB_OWNER", ""),
            repo=getattr(settings, "GITHUB_REPO", ""),
            branch=getattr(settings, "GITHUB_BRANCH", "main"),
        )
    return LocalDirStore(getattr(settings, "QR_DIR", "qr_codes"))


def build_container(*, db_config: dict, settings: ModuleType) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    users_repo = MySQLUserRepository(conn)
    students_repo = MySQLStudentRepository(conn)
    guardians_repo = MySQLGuardianRepository(conn)
    qr_repo = MySQLQrCodeRepository(conn)
    scans_repo = MySQLScanRepository(conn)
    templates_repo = MySQLTemplateRepository(conn)
    messages_repo = MySQLMessageRepository(conn)
    settings_repo = MySQLSettingsRepository(conn)
    maintenance_repo = MySQLDataMaintenanceRepository(conn)

    token_service = TokenService(
        getattr(settings, "JWT_SECRET"),
        short_ttl=getattr(settings, "JWT_EXPIRES_SHORT", "12h"),
        long_ttl=getattr(settings, "JWT_EXPIRES_LONG", "30d"),
    )
    sms_client = ClickSendClient(
        username=getattr(settings, "CLICK_SEND_USERNAME", ""),
        api_key=getattr(settings, "CLICK_SEND_API_KEY", ""),
        sender=getattr(settings, "CLICK_SEND_FROM", ""),
    )

    audit = AuditService(MySQLAuditRepository(conn))
    template_service = TemplateService(templates_repo)
    settings_service = SettingsService(
        settings_repo,
        maintenance_repo,
        sms_client,
        audit,
        default_centre_name=getattr(settings, "CENTER_NAME", ""),
    )
    qr_service = QrService(
        qr_repo,
        students_repo,
        build_qr_store(settings),
        repo_dir=getattr(settings, "QR_REPO_DIR", "qr"),
    )

    return Container(
        conn=conn,
        token_service=token_service,
        sms_client=sms_client,
        auth_service=AuthService(users_repo, token_service),
        user_service=UserService(users_repo, audit),
        student_service=StudentService(students_repo, guardians_repo, audit),
        guardian_service=GuardianService(guardians_repo, audit),
        qr_service=qr_service,
        template_service=template_service,
        message_service=MessageService(messages_repo),
        settings_service=settings_service,
        scan_service=ScanService(
            qr_repo,
            students_repo,
            guardians_repo,
            scans_repo,
            template_service,
            Notifier(messages_repo, sms_client),
            settings_service,
        ),
        import_service=ImportService(students_repo, guardians_repo, qr_service),
    )
