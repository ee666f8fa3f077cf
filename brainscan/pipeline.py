import logging
import time

from brainscan import config
from brainscan.exceptions import InferenceError
from brainscan.preprocessing import preprocess, validate_upload
from brainscan.report import synthesize

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    """Upload checks -> preprocessing -> classification -> report."""

    def __init__(self, loader, max_upload_size=None, img_size=None):
        self.loader = loader
        self.max_upload_size = max_upload_size or config.MAX_UPLOAD_SIZE
        self.img_size = img_size or config.IMG_SIZE

    def analyze(self, image_bytes, content_type):
        validate_upload(content_type, len(image_bytes), self.max_upload_size)

        self.loader.ensure_loaded()
        classifier = self.loader.classifier()

        start = time.perf_counter()
        batch = preprocess(image_bytes, self.img_size)
        try:
            try:
                probabilities = classifier.classify(batch)
            except InferenceError as e:
                logger.error("Inference failed, degrading to heuristic: %s", e)
                classifier = self.loader.heuristic
                probabilities = classifier.classify(batch)
        finally:
            del batch
        processing_time = time.perf_counter() - start

        fallback_used = classifier is self.loader.heuristic
        result = synthesize(probabilities, processing_time, fallback_used=fallback_used)
        logger.info(
            "Analysis complete: %s (%d%%) via %s in %.3fs",
            result.tumor_type,
            result.confidence,
            classifier.name,
            processing_time,
        )
        return result
