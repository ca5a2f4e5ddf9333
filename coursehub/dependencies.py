"""
FastAPI dependency providers.

Collaborators are built here and handed to the services; tests swap them
through ``app.dependency_overrides``.
"""

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from coursehub.collaborators import LocalFileStore, StripePayments
from coursehub.config import Settings, get_settings
from coursehub.database import get_db
from coursehub.email_utils import MailNotifier
from coursehub.identity import Principal, resolve_principal
from coursehub.services.assignments import AssignmentStore
from coursehub.services.catalog import Catalog
from coursehub.services.enrollments import EnrollmentLedger
from coursehub.services.progress import ProgressAggregator
from coursehub.services.quizzes import QuizStore


def get_principal(x_user_id: int = Header(...), db: Session = Depends(get_db)) -> Principal:
    return resolve_principal(db, x_user_id)


def get_payments(settings: Settings = Depends(get_settings)):
    return StripePayments(settings)


def get_file_store(settings: Settings = Depends(get_settings)):
    return LocalFileStore(settings)


def get_notifier(settings: Settings = Depends(get_settings)):
    return MailNotifier(settings)


def get_catalog(db: Session = Depends(get_db)) -> Catalog:
    return Catalog(db)


def get_ledger(db: Session = Depends(get_db), catalog: Catalog = Depends(get_catalog),
               payments=Depends(get_payments)) -> EnrollmentLedger:
    return EnrollmentLedger(db, catalog, payments)


def get_progress(db: Session = Depends(get_db), catalog: Catalog = Depends(get_catalog),
                 settings: Settings = Depends(get_settings)) -> ProgressAggregator:
    return ProgressAggregator(db, catalog, settings)


def get_quiz_store(db: Session = Depends(get_db), catalog: Catalog = Depends(get_catalog)) -> QuizStore:
    return QuizStore(db, catalog)


def get_assignment_store(db: Session = Depends(get_db), catalog: Catalog = Depends(get_catalog),
                         file_store=Depends(get_file_store),
                         settings: Settings = Depends(get_settings)) -> AssignmentStore:
    return AssignmentStore(db, catalog, file_store, settings)
