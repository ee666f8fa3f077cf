import asyncio
import enum
import logging
import threading

import numpy as np

from brainscan import config
from brainscan.classifiers import HeuristicClassifier, ModelClassifier

logger = logging.getLogger(__name__)


class ModelPhase(enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"


def load_keras_model(location):
    """Load a Keras model from a local path or an http(s) URL."""
    import tensorflow as tf

    path = location
    if str(location).startswith(("http://", "https://")):
        fname = str(location).rstrip("/").rsplit("/", 1)[-1]
        path = tf.keras.utils.get_file(fname, origin=str(location))

    return tf.keras.models.load_model(path)


class ModelLoader:
    """
    Owns the trained model for the lifetime of the process.

    The first call to ensure_loaded() fetches and warms up the model. Concurrent
    callers wait for that load instead of starting their own. Any failure leaves
    the loader ready with no model, and classifier() then hands out the
    heuristic fallback.
    """

    def __init__(self, location=None, fetch=load_keras_model, heuristic=None, img_size=None):
        self.location = location or config.MODEL_PATH
        self.img_size = img_size or config.IMG_SIZE
        self._fetch = fetch
        self._heuristic = heuristic or HeuristicClassifier()

        self._cond = threading.Condition()
        self._phase = ModelPhase.UNLOADED
        self._model = None
        self._error = None

    @property
    def phase(self):
        return self._phase

    @property
    def model(self):
        return self._model

    @property
    def heuristic(self):
        return self._heuristic

    def is_ready(self):
        return self._phase is ModelPhase.READY

    def is_fallback(self):
        return self.is_ready() and self._model is None

    def ensure_loaded(self):
        """Load the model once. Never raises. Returns the terminal phase."""
        with self._cond:
            if self._phase is ModelPhase.READY:
                return self._phase
            if self._phase is ModelPhase.LOADING:
                self._cond.wait_for(lambda: self._phase is ModelPhase.READY)
                return self._phase
            self._phase = ModelPhase.LOADING

        model = None
        try:
            logger.info("Loading model from %s", self.location)
            candidate = self._fetch(self.location)
            self._warm_up(candidate)
            model = candidate
            logger.info("Model loaded successfully")
        except Exception as e:
            logger.error("Error loading model, using heuristic fallback: %s", e)
            self._error = str(e)
        finally:
            # Waiters are released even if the load was interrupted
            with self._cond:
                if model is None and self._error is None:
                    self._error = "Model load interrupted"
                self._model = model
                self._phase = ModelPhase.READY
                self._cond.notify_all()
        return self._phase

    async def ensure_loaded_async(self):
        return await asyncio.to_thread(self.ensure_loaded)

    def _warm_up(self, model):
        dummy = np.zeros((1, self.img_size, self.img_size, 3), dtype=np.float32)
        model.predict(dummy, verbose=0)

    def classifier(self):
        """Strategy selected by the terminal state."""
        if not self.is_ready():
            raise RuntimeError("ensure_loaded() must complete before classifying")
        if self._model is None:
            return self._heuristic
        return ModelClassifier(self._model)

    def status(self):
        return {
            "phase": self._phase.value,
            "fallback": self.is_fallback(),
            "location": str(self.location),
            "error": self._error,
        }
