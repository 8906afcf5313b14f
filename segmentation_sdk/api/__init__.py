"""HTTP-facing layer of the segmentation client."""

from .client import SegmentationClient
from .orchestrator import UploadOrchestrator
from .transport import HttpTransport

__all__ = ["HttpTransport", "SegmentationClient", "UploadOrchestrator"]
