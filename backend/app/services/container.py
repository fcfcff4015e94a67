"""
Service container.

Wires the services to the settings cache and the external collaborators.
One container lives on `app.state.services`; tests build their own with
fake collaborators.
"""

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import AsyncSessionLocal
from backend.app.services.doc_service import DocService
from backend.app.services.external import (
    ChainedDocumentSource, DistanceMatrixEtaProvider, DocumentSource, ErpCallLog, ErpDocumentSource,
    ErpStatusSync, EtaProvider, MockDocumentSource, SmsSender, StatusSync, TwoFactorSmsSender
)
from backend.app.services.setting_service import SettingService
from backend.app.services.settings_cache import SettingsCache
from backend.app.services.tracking_service import TrackingService
from backend.app.services.trip_service import TripService


class Services:
    
    def __init__(
        self,
        settings_cache: SettingsCache,
        mock_source: MockDocumentSource,
        document_source: DocumentSource,
        status_sync: StatusSync,
        sms_sender: SmsSender,
        eta_provider: EtaProvider,
        session_factory: Callable[[], AsyncSession]
    ):
        self.settings_cache = settings_cache
        self.mock_source = mock_source
        self.tracking = TrackingService(eta_provider, session_factory)
        self.docs = DocService(settings_cache, document_source, mock_source, status_sync, self.tracking)
        self.trips = TripService(settings_cache, status_sync, sms_sender)
        self.settings = SettingService(settings_cache)


def build_services(session_factory: Optional[Callable[[], AsyncSession]] = None) -> Services:
    """Production wiring: ERP lookups fall back to the mock source."""
    session_factory = session_factory or AsyncSessionLocal
    mock_source = MockDocumentSource()
    call_log = ErpCallLog(session_factory)
    return Services(
        settings_cache=SettingsCache(),
        mock_source=mock_source,
        document_source=ChainedDocumentSource(ErpDocumentSource(call_log=call_log), mock_source),
        status_sync=ErpStatusSync(call_log=call_log),
        sms_sender=TwoFactorSmsSender(),
        eta_provider=DistanceMatrixEtaProvider(),
        session_factory=session_factory,
    )
