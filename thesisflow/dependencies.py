"""FastAPI dependency providers.

Each collaborator has its own provider so tests can swap one through
``app.dependency_overrides`` without rebuilding the rest.
"""

from fastapi import Depends

from thesisflow.config import Settings, get_settings
from thesisflow.services.identity import IdentityProvider, TokenIdentityProvider
from thesisflow.services.ledger import AssignmentLedger
from thesisflow.services.plagiarism import HttpSimilarityOracle, SimilarityOracle
from thesisflow.services.plagiarism_gate import PlagiarismGate
from thesisflow.services.renderer import DocumentRenderer, PdfReviewRenderer
from thesisflow.services.workflow import ThesisWorkflowService
from thesisflow.utils.storage import FileStore, LocalFileStore


def get_file_store(settings: Settings = Depends(get_settings)) -> FileStore:
    return LocalFileStore(settings.storage_dir)


def get_identity_provider(settings: Settings = Depends(get_settings)) -> IdentityProvider:
    return TokenIdentityProvider(settings.secret_key)


def get_similarity_oracle(store: FileStore = Depends(get_file_store)) -> SimilarityOracle:
    return HttpSimilarityOracle(store)


def get_renderer(
    settings: Settings = Depends(get_settings), store: FileStore = Depends(get_file_store)
) -> DocumentRenderer:
    return PdfReviewRenderer(store, font_path=settings.review_font_path)


def get_workflow_service(
    settings: Settings = Depends(get_settings),
    store: FileStore = Depends(get_file_store),
    identity: IdentityProvider = Depends(get_identity_provider),
    oracle: SimilarityOracle = Depends(get_similarity_oracle),
    renderer: DocumentRenderer = Depends(get_renderer),
) -> ThesisWorkflowService:
    gate = PlagiarismGate(oracle, store, threshold=settings.plagiarism_threshold)
    return ThesisWorkflowService(
        store=store,
        identity=identity,
        renderer=renderer,
        gate=gate,
        ledger=AssignmentLedger(store),
        max_attempts=settings.plagiarism_max_attempts,
    )
