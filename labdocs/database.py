"""
SQLAlchemy models and repository of certificate and service records.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Set

from sqlalchemy import (
    create_engine, Column, String, Integer, DateTime, Date, JSON, Text, text
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from .models import CertificateRecord, ServiceRecord

logger = logging.getLogger(__name__)

# Base class of the models
Base = declarative_base()


class Certificate(Base):
    """Calibration certificate row."""

    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    certificate_id = Column(String(40), unique=True, nullable=False, index=True)
    certificate_no = Column(String(64), unique=True, nullable=False, index=True)

    customer_name = Column(String(255))
    site_location = Column(String(255))
    make_model = Column(String(255))
    range = Column(String(255))
    serial_no = Column(String(255))
    calibration_gas = Column(String(255))
    gas_canister_details = Column(Text)
    date_of_calibration = Column(Date)
    calibration_due_date = Column(Date)
    observations = Column(JSON, nullable=False, default=list)
    engineer_name = Column(String(255))
    status = Column(String(50), default="checked")

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    def __repr__(self):
        return f"<Certificate(id={self.certificate_id}, no={self.certificate_no})>"


class Service(Base):
    """Service / calibration / installation job report row."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_id = Column(String(40), unique=True, nullable=False, index=True)

    customer_name = Column(String(255))
    customer_location = Column(String(255))
    contact_person = Column(String(255))
    contact_number = Column(String(50))
    service_engineer = Column(String(255))
    date = Column(Date)
    place = Column(String(255))
    place_options = Column(String(255))
    nature_of_job = Column(String(255))
    report_no = Column(String(100))
    instruments_make_model = Column(Text)
    instruments_calibrated_ok = Column(Text)
    instruments_faulty = Column(Text)
    engineer_remarks = Column(JSON, nullable=False, default=list)
    engineer_name = Column(String(255))
    status = Column(String(50), default="checked")

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    def __repr__(self):
        return f"<Service(id={self.service_id}, customer={self.customer_name})>"


class DatabaseManager:
    """Database connection manager."""

    def __init__(self, database_url: str = None):
        """
        Args:
            database_url: SQLAlchemy URL; the configured one by default
        """
        if database_url is None:
            from config import get_settings
            database_url = get_settings().database_url

        connect_args = {}
        if database_url.startswith("sqlite"):
            # Sessions are used from the API worker threads
            connect_args["check_same_thread"] = False
            self._ensure_sqlite_directory(database_url)

        self.engine = create_engine(
            database_url,
            pool_pre_ping=True,
            connect_args=connect_args,
            echo=False
        )

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    @staticmethod
    def _ensure_sqlite_directory(database_url: str):
        prefix = "sqlite:///"
        if database_url.startswith(prefix):
            db_path = database_url[len(prefix):]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self):
        """Creates all tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self):
        """Drops all tables."""
        Base.metadata.drop_all(bind=self.engine)
        logger.info("Database tables dropped")

    def get_session(self) -> Session:
        """Returns a new session."""
        return self.SessionLocal()

    def health_check(self) -> bool:
        """Checks the database connection."""
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.error(f"Database connection error: {e}")
            return False


CERTIFICATE_COLUMNS = [c.name for c in Certificate.__table__.columns if c.name != "id"]
SERVICE_COLUMNS = [c.name for c in Service.__table__.columns if c.name != "id"]


class RecordRepository:
    """Repository of certificate and service records."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    # Certificates

    def create_certificate(self, certificate_data: dict) -> CertificateRecord:
        """
        Stores a new certificate.

        Args:
            certificate_data: Column values, including certificate_id and certificate_no

        Returns:
            CertificateRecord: Stored record
        """
        with self.db_manager.get_session() as session:
            certificate = Certificate(**certificate_data)
            session.add(certificate)
            session.commit()
            return self._certificate_record(certificate)

    def get_certificate(self, certificate_id: str) -> Optional[CertificateRecord]:
        with self.db_manager.get_session() as session:
            certificate = session.query(Certificate).filter(
                Certificate.certificate_id == certificate_id
            ).first()
            return self._certificate_record(certificate) if certificate else None

    def list_certificates(self) -> List[CertificateRecord]:
        """Returns all certificates, newest first."""
        with self.db_manager.get_session() as session:
            certificates = session.query(Certificate).order_by(
                Certificate.created_at.desc(), Certificate.id.desc()
            ).all()
            return [self._certificate_record(c) for c in certificates]

    def update_certificate(self, certificate_id: str, changes: Dict) -> Optional[CertificateRecord]:
        """
        Applies changes to a certificate; the ID and certificate number are never changed.

        Returns:
            Optional[CertificateRecord]: Updated record or None if not found
        """
        with self.db_manager.get_session() as session:
            certificate = session.query(Certificate).filter(
                Certificate.certificate_id == certificate_id
            ).first()
            if not certificate:
                return None

            for name, value in changes.items():
                if name in CERTIFICATE_COLUMNS and name not in ("certificate_id", "certificate_no", "created_at"):
                    setattr(certificate, name, value)
            session.commit()
            return self._certificate_record(certificate)

    def delete_certificate(self, certificate_id: str) -> bool:
        with self.db_manager.get_session() as session:
            deleted = session.query(Certificate).filter(
                Certificate.certificate_id == certificate_id
            ).delete()
            session.commit()
            return deleted > 0

    def get_existing_certificate_ids(self) -> Set[str]:
        with self.db_manager.get_session() as session:
            return {row[0] for row in session.query(Certificate.certificate_id).all()}

    # Services

    def create_service(self, service_data: dict) -> ServiceRecord:
        """
        Stores a new service report.

        Args:
            service_data: Column values, including service_id

        Returns:
            ServiceRecord: Stored record
        """
        with self.db_manager.get_session() as session:
            service = Service(**service_data)
            session.add(service)
            session.commit()
            return self._service_record(service)

    def get_service(self, service_id: str) -> Optional[ServiceRecord]:
        with self.db_manager.get_session() as session:
            service = session.query(Service).filter(Service.service_id == service_id).first()
            return self._service_record(service) if service else None

    def list_services(self) -> List[ServiceRecord]:
        """Returns all service reports, newest first."""
        with self.db_manager.get_session() as session:
            services = session.query(Service).order_by(
                Service.created_at.desc(), Service.id.desc()
            ).all()
            return [self._service_record(s) for s in services]

    def update_service(self, service_id: str, changes: Dict) -> Optional[ServiceRecord]:
        with self.db_manager.get_session() as session:
            service = session.query(Service).filter(Service.service_id == service_id).first()
            if not service:
                return None

            for name, value in changes.items():
                if name in SERVICE_COLUMNS and name not in ("service_id", "created_at"):
                    setattr(service, name, value)
            session.commit()
            return self._service_record(service)

    def delete_service(self, service_id: str) -> bool:
        with self.db_manager.get_session() as session:
            deleted = session.query(Service).filter(Service.service_id == service_id).delete()
            session.commit()
            return deleted > 0

    def get_existing_service_ids(self) -> Set[str]:
        with self.db_manager.get_session() as session:
            return {row[0] for row in session.query(Service.service_id).all()}

    def get_statistics(self) -> dict:
        """Number of stored records."""
        with self.db_manager.get_session() as session:
            return {
                "total_certificates": session.query(Certificate).count(),
                "total_services": session.query(Service).count()
            }

    @staticmethod
    def _certificate_record(certificate: Certificate) -> CertificateRecord:
        return CertificateRecord.model_validate(
            {name: getattr(certificate, name) for name in CERTIFICATE_COLUMNS}
        )

    @staticmethod
    def _service_record(service: Service) -> ServiceRecord:
        return ServiceRecord.model_validate(
            {name: getattr(service, name) for name in SERVICE_COLUMNS}
        )


# Global database manager, created on first use
_db_manager: Optional[DatabaseManager] = None
_record_repo: Optional[RecordRepository] = None


def get_db_manager() -> DatabaseManager:
    """Returns the database manager."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


def get_record_repo() -> RecordRepository:
    """Returns the record repository."""
    global _record_repo
    if _record_repo is None:
        _record_repo = RecordRepository(get_db_manager())
    return _record_repo
