import logging
from dataclasses import dataclass

from neuroscan.config import Settings
from neuroscan.inference import InferenceOrchestrator
from neuroscan.mock_results import MockResultGenerator
from neuroscan.model_manager import ModelManager
from neuroscan.preprocessing import ImagePreprocessor
from neuroscan.session import AnalysisSession
from neuroscan.tensors import TensorLedger

logger = logging.getLogger(__name__)


@dataclass
class NeuroScanServices:
    """Everything the UI and API need, wired together once by build_services()."""

    settings: Settings
    manager: ModelManager
    orchestrator: InferenceOrchestrator
    session: AnalysisSession

    def load_model(self):
        """True only when the real model is active; False means mock mode."""
        return self.manager.load() and not self.manager.is_mock_mode()

    def is_mock_mode(self):
        return self.manager.is_mock_mode()

    def analyze_image(self, file):
        return self.session.analyze(file)

    def analyze_batch(self, files, progress=None, skipped=None):
        return self.session.analyze_batch(files, progress=progress, skipped=skipped)

    def stored_results(self):
        return self.session.load_results()

    def with_store(self, store):
        """Same model and orchestrator, different session storage (one per UI session)."""
        session = AnalysisSession(self.orchestrator, store=store, key=self.settings.results_key)
        return NeuroScanServices(self.settings, self.manager, self.orchestrator, session)


def build_services(settings=None, store=None, fetcher=None, readers=None, rng=None):
    settings = settings or Settings.from_env()
    ledger = TensorLedger()

    manager_kwargs = {}
    if fetcher is not None:
        manager_kwargs["fetcher"] = fetcher
    if readers is not None:
        manager_kwargs["readers"] = readers
    manager = ModelManager(settings, ledger=ledger, **manager_kwargs)

    orchestrator = InferenceOrchestrator(
        manager,
        preprocessor=ImagePreprocessor(settings.image_size, settings.normalization, ledger=ledger),
        mock_generator=MockResultGenerator(rng),
    )
    session = AnalysisSession(orchestrator, store=store, key=settings.results_key)
    logger.info("NeuroScan services ready (model: %s, mock mode: %s)", settings.model_url, settings.mock_mode)
    return NeuroScanServices(settings, manager, orchestrator, session)
