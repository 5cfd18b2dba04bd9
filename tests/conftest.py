"""Pytest configuration and shared fixtures."""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from casework.core.database import DatabaseClient, create_engine, create_session_maker
from casework.schemas.case import CaseIntake
from casework.schemas.enums import DocumentCategory
from casework.schemas.extraction import ClassificationResult, DocumentInput, ExtractedText
from casework.services.extraction.client import ExtractionBackend, ExtractionClient
from casework.services.pipeline.coordinator import PipelineCoordinator


class ScriptedBackend(ExtractionBackend):
    """Extraction backend answering from per-file scripts.

    Each file reference is scripted with the text, category and data the
    stages return. Errors queued for a stage are raised one per call before
    the scripted answer is given.
    """

    def __init__(self):
        self.scripts: Dict[str, Dict[str, Any]] = {}
        self.errors: Dict[Tuple[str, str], List[Exception]] = {}
        self.delays: Dict[str, float] = {}
        self.calls: List[Tuple[str, str]] = []
        self._by_text: Dict[str, str] = {}

    def script(
        self,
        file_ref: str,
        category: DocumentCategory,
        data: Optional[Dict[str, Any]] = None,
        text: Optional[str] = None,
        document_date: Optional[str] = None,
        provider_name: Optional[str] = None,
    ) -> None:
        text = text or f"contents of {file_ref}"
        self.scripts[file_ref] = {
            "text": text,
            "category": category,
            "data": data or {},
            "document_date": document_date,
            "provider_name": provider_name,
        }
        self._by_text[text] = file_ref

    def fail(self, file_ref: str, stage: str, *errors: Exception) -> None:
        self.errors.setdefault((file_ref, stage), []).extend(errors)

    async def _enter(self, file_ref: str, stage: str) -> Dict[str, Any]:
        self.calls.append((file_ref, stage))
        delay = self.delays.get(file_ref)
        if delay:
            await asyncio.sleep(delay)
        queued = self.errors.get((file_ref, stage))
        if queued:
            raise queued.pop(0)
        return self.scripts[file_ref]

    async def extract_text(self, document: DocumentInput) -> ExtractedText:
        script = await self._enter(document.file_ref, "extract_text")
        return ExtractedText(text=script["text"], page_count=1)

    async def classify(self, text: str, hints: Optional[Dict[str, Any]] = None) -> ClassificationResult:
        script = await self._enter(self._by_text[text], "classify")
        return ClassificationResult(
            category=script["category"],
            confidence=0.95,
            document_date=script["document_date"],
            provider_name=script["provider_name"],
        )

    async def extract_data(self, text: str, category: DocumentCategory) -> Dict[str, Any]:
        script = await self._enter(self._by_text[text], "extract_data")
        return script["data"]


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite database with all tables created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'casework.db'}", echo=False)
    database = DatabaseClient(engine)
    await database.create_tables()
    yield engine
    await database.disconnect()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def extraction_client(backend) -> ExtractionClient:
    """Client with a short timeout and no backoff delay."""
    return ExtractionClient(backend, timeout=2.0, max_attempts=3, retry_delay=0, max_retry_delay=0)


@pytest_asyncio.fixture
async def coordinator(session_maker, extraction_client):
    coordinator = PipelineCoordinator(
        session_maker,
        extraction_client,
        max_concurrent_documents=4,
        aggregation_debounce_seconds=0,
    )
    yield coordinator
    await coordinator.close()


@pytest.fixture
def intake() -> CaseIntake:
    """Intake for a rear-end collision in California."""
    return CaseIntake(
        client_first_name="Maria",
        client_last_name="Lopez",
        client_date_of_birth=date(1985, 3, 14),
        client_address="12 Elm Street, Fresno, CA",
        incident_date=date(2024, 1, 10),
        incident_type="Motor vehicle collision",
        incident_location="Blackstone Ave and Shaw Ave, Fresno, CA",
        incident_description="Client's vehicle was rear-ended while stopped at a red light.",
        defendant_name="John Carter",
        defendant_insurer="Acme Mutual",
        claim_number="AM-448812",
        jurisdiction="California",
    )


@pytest.fixture
def medical_bill() -> Dict[str, Any]:
    return {
        "provider": {"name": "Valley Urgent Care"},
        "charges": [
            {"dateOfService": "2024-01-11", "description": "Urgent care visit", "amountBilled": 500},
        ],
    }


@pytest.fixture
def wage_documentation() -> Dict[str, Any]:
    return {
        "employer": {"name": "Fresno Logistics"},
        "wageLoss": {"totalWageLoss": 1200, "calculationMethod": "10 days at $120/day"},
        "missedWork": {"startDate": "2024-01-11", "returnDate": "2024-01-25", "totalDaysMissed": 10},
    }


@pytest.fixture
def medical_records() -> Dict[str, Any]:
    return {
        "visits": [
            {"date": "2024-01-11", "providerName": "Valley Urgent Care", "visitType": "Urgent care",
             "chiefComplaint": "Neck pain after collision"},
            {"date": "2024-02-01", "providerName": "Dr. Patel", "visitType": "Follow-up",
             "chiefComplaint": "Persistent neck pain"},
        ],
        "diagnoses": ["Cervical strain"],
    }
